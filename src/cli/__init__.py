"""Command-line tools for MemoryGraph.

- ``python -m src.cli.ingest`` (or ``python -m src.cli``) ingests files and
  directories, extracts text without indexing, and inspects document
  status and knowledge graphs.
"""

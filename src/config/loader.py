"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers winning:

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file           -- local developer overrides
  3. environment variables   -- deploy-time values

``load_config`` reads the YAML file, then deep-merges the values resolved
by :class:`~src.config.settings.Settings` on top of it.
"""

from pathlib import Path

import yaml

from src.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "openai_api_key": settings.openai_api_key,
            "openai_base_url": settings.openai_base_url,
            "available_providers": settings.get_available_llm_providers(),
        },
        "ocr": {
            "language": settings.tesseract_lang,
            "dpi": settings.ocr_dpi,
        },
        "storage": {
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "chromadb_collection": settings.chromadb_collection,
            "document_db_path": settings.document_db_path,
            "upload_dir": settings.storage_dir,
        },
        "chunking": {
            "chunk_size": settings.chunk_size,
            "overlap": settings.chunk_overlap,
        },
        "extraction": {
            "max_file_size": settings.max_file_size,
        },
        "embedding": {
            "batch_size": settings.embedding_batch_size,
            "batch_delay": settings.embedding_batch_delay,
        },
        "graph": {
            "batch_size": settings.entity_batch_size,
            "batch_delay": settings.entity_batch_delay,
            "min_entity_relevance": settings.min_entity_relevance,
            "max_entities": settings.max_entities,
            "min_cooccurrence": settings.min_cooccurrence,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value

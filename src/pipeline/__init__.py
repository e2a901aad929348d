"""Progress reporting for the ingestion pipeline."""

from src.pipeline.progress_tracker import ProgressTracker

__all__ = ["ProgressTracker"]

"""Input/output helpers for releaseprep."""

from .config import load_config, split_repository, token_from_env
from .logging import StructuredLogger

__all__ = ["StructuredLogger", "load_config", "split_repository", "token_from_env"]

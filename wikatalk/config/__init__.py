"""Application configuration."""

from .settings import AnalyzerConfig, Settings, StorageConfig, TranslationConfig, settings

__all__ = ["AnalyzerConfig", "Settings", "StorageConfig", "TranslationConfig", "settings"]

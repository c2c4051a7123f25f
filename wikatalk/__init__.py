"""WikaTalk audio ingestion and translation service."""

"""Domain entities for the audio pipeline."""

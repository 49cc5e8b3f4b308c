"""FastAPI boundary for the transcription service."""

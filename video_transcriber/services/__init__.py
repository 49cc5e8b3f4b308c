"""Service layer modules for the transcription service."""

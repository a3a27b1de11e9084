"""Text-to-speech collaborators."""

from translatebridge.audio.elevenlabs import ElevenLabsClient

__all__ = ["ElevenLabsClient"]

"""Mufessir: tafsir generation grounded in classical scholar excerpts."""

__version__ = "1.0.0"

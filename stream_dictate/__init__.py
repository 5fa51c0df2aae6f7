"""Stream Dictate - reconcile live speech-to-text fragments into clean text."""

__version__ = "0.1.0"

__all__ = [
    "capitalization",
    "config",
    "formatting",
    "fragments",
    "llm_cleanup",
    "overlap",
    "pipeline",
    "repetition",
    "session",
    "settings_store",
    "shortcuts",
    "similarity",
    "sink",
]

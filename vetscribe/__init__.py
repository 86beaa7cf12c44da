"""VetScribe: veterinary consultation audio to structured clinical notes."""

__version__ = "0.1.0"

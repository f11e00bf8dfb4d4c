"""CampusBot: retrieval-augmented question answering for a campus website."""

__version__ = "0.1.0"

"""Exception types raised across the assistant."""


class CampusBotError(Exception):
    """Base class for all assistant errors."""


class PageLoadError(CampusBotError):
    """A single page or sitemap could not be fetched or parsed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to load {url}: {reason}")
        self.url = url
        self.reason = reason


class IngestionError(CampusBotError):
    """Ingestion produced nothing usable."""


class IndexNotReadyError(CampusBotError):
    """The vector index has not been loaded."""


class RetrievalError(CampusBotError):
    """Similarity search against the vector index failed."""


class GenerationError(CampusBotError):
    """The generation service failed or returned an unusable response."""


class PortUnavailableError(CampusBotError):
    """No port in the candidate range could be bound."""

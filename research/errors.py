"""Exceptions raised by the research pipeline."""


class ResearchError(Exception):
    """Base class for failures surfaced to the user as one short message."""


class ConfigurationError(ResearchError):
    """A required setting is missing or invalid."""


class SearchBackendError(ResearchError):
    """The search backend could not be reached or returned an error."""


class DocumentNotFoundError(SearchBackendError):
    """No stored chunks match the requested transcript name."""


class GenerationError(ResearchError):
    """A generation-model call failed after retries."""


class TurnCancelledError(ResearchError):
    """The turn was cancelled before it completed."""

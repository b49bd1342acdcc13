"""
Exceptions raised across the ingestion and enrichment pipeline.
"""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class DuplicateKeyError(PipelineError):
    """A posting with the same url already exists."""

    def __init__(self, url: str):
        super().__init__(f"Posting already exists: {url}")
        self.url = url


class GenerationServiceError(PipelineError):
    """The text generation call failed or returned an unusable body."""


class ConfigurationMissingError(PipelineError):
    """A feature was used without the configuration it needs."""


class BrowserUnavailableError(PipelineError):
    """The shared browser session could not be started."""

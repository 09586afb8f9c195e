"""Exception types shared by the icon catalog pipeline."""

from typing import List, Optional


class IconPipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(IconPipelineError):
    """Required settings are missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class DatasetCorruptError(IconPipelineError):
    """The dataset file exists but does not hold a JSON array of icon objects."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Dataset file {path} is corrupt: {reason}")
        self.path = path
        self.reason = reason


class ImageConversionError(IconPipelineError):
    """An icon could not be rendered to PNG."""


class MetadataGenerationError(IconPipelineError):
    """The generative model returned no usable icon metadata."""


class DatabaseConnectionError(IconPipelineError):
    """The target database could not be reached."""

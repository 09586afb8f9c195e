"""Configuration management for the Icon Catalog Pipeline."""

from .settings import (
    PipelineConfig,
    GenerationConfig,
    PathsConfig,
    LoaderConfig,
    DatabaseConfig,
    load_overrides,
    get_pipeline_config,
    validate_batch_size,
)

__all__ = [
    "PipelineConfig",
    "GenerationConfig",
    "PathsConfig",
    "LoaderConfig",
    "DatabaseConfig",
    "load_overrides",
    "get_pipeline_config",
    "validate_batch_size",
]

"""
Configuration settings for the Icon Catalog Pipeline.

Reads environment variables (optionally from a .env file) and an optional
YAML override file. The resulting PipelineConfig is built once by the CLI
and passed explicitly to every component.
"""

import os
import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any

from dotenv import load_dotenv

from icon_catalog.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ICONS_ROOT = "./icons"
DEFAULT_LIBRARY = "default"
DATASET_FILENAME = "dataset.json"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{value}'")


def _env_ms(name: str, default_ms: int) -> float:
    """Read a millisecond env var and return seconds."""
    value = _env_int(name, default_ms)
    if value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value}")
    return value / 1000.0


def validate_batch_size(batch_size: Any, source: str = "batch_size") -> int:
    """Return batch_size if it is a positive integer, else raise ConfigurationError."""
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ConfigurationError(f"{source} must be a positive integer, got {batch_size!r}")
    return batch_size


@dataclass
class GenerationConfig:
    """Gemini generation and embedding configuration."""
    api_key: Optional[str] = None
    model_name: str = "gemini-1.5-flash"
    embedding_model: str = "models/text-embedding-004"
    temperature: float = 0.0
    max_output_tokens: int = 256
    language: str = "English"
    item_delay_seconds: float = 1.0


@dataclass
class PathsConfig:
    """Filesystem locations for icons and the dataset."""
    icons_root: str = DEFAULT_ICONS_ROOT
    library: str = DEFAULT_LIBRARY
    dataset_path: Optional[str] = None

    def __post_init__(self):
        if not self.dataset_path:
            self.dataset_path = os.path.join(self.icons_root, DATASET_FILENAME)

    @property
    def library_dir(self) -> str:
        """Directory holding the SVG/JSON files of the configured library."""
        return os.path.join(self.icons_root, self.library)


@dataclass
class LoaderConfig:
    """Bulk load behavior settings."""
    batch_size: int = 250
    batch_delay_seconds: float = 0.25
    table_name: str = "icons"
    verify_each_record: bool = True


@dataclass
class DatabaseConfig:
    """PostgreSQL connection parameters."""
    url: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None

    REQUIRED_ENV_VARS = {
        "url": "POSTGRES_URL",
        "user": "POSTGRES_USER",
        "password": "POSTGRES_PASSWORD",
        "database": "POSTGRES_DATABASE",
    }

    def missing_fields(self) -> List[str]:
        """Return the environment variable names of unset required fields."""
        return [
            env_name
            for attr, env_name in self.REQUIRED_ENV_VARS.items()
            if not getattr(self, attr)
        ]

    def require(self) -> "DatabaseConfig":
        """Raise ConfigurationError unless all required parameters are set."""
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                f"The following environment variables are missing: {', '.join(missing)}",
                missing=missing
            )
        return self

    def connection_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for psycopg.connect()."""
        kwargs: Dict[str, Any] = {
            "conninfo": self.url,
            "user": self.user,
            "password": self.password,
            "dbname": self.database,
        }
        if self.host:
            kwargs["host"] = self.host
        if self.port:
            kwargs["port"] = self.port
        return kwargs


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    loader: LoaderConfig = field(default_factory=LoaderConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def require_api_key(self) -> str:
        if not self.generation.api_key:
            raise ConfigurationError(
                "The following environment variables are missing: GOOGLE_API_KEY",
                missing=["GOOGLE_API_KEY"]
            )
        return self.generation.api_key


def load_overrides(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load YAML overrides for the pipeline configuration.

    Args:
        config_path: Path to a YAML file. If None, uses ICON_PIPELINE_CONFIG.

    Returns:
        Parsed mapping with optional "generation", "paths" and "loader" sections.
        Empty dict when no file is configured.
    """
    config_path = config_path or os.getenv("ICON_PIPELINE_CONFIG")
    if not config_path:
        return {}

    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    logger.info(f"Loaded configuration overrides from {path}")
    return overrides


def _apply_section(target: Any, section: Optional[Dict[str, Any]], section_name: str):
    for key, value in (section or {}).items():
        if not hasattr(target, key):
            raise ConfigurationError(f"Unknown setting '{section_name}.{key}'")
        setattr(target, key, value)


def get_pipeline_config(config_path: Optional[str] = None) -> PipelineConfig:
    """
    Create pipeline configuration from environment variables and YAML overrides.

    Environment variables:
        GOOGLE_API_KEY: Gemini API key
        GEMINI_MODEL_NAME: Generative model (default: gemini-1.5-flash)
        GEMINI_EMBEDDING_MODEL: Embedding model (default: models/text-embedding-004)
        ICON_PROMPT_LANGUAGE: Language the model must answer in (default: English)
        ICON_ITEM_DELAY_MS: Delay between icons (default: 1000)
        ICONS_ROOT: Root icons folder (default: ./icons)
        ICON_LIBRARY: Icon library sub-folder and tag (default: default)
        ICON_DATASET_PATH: Dataset file (default: <ICONS_ROOT>/dataset.json)
        ICON_BATCH_SIZE: Records per bulk-load batch (default: 250)
        ICON_BATCH_DELAY_MS: Delay between batches (default: 250)
        ICON_TABLE_NAME: Target table (default: icons)
        ICON_VERIFY_EACH_RECORD: Re-check connectivity before each insert (default: true)
        POSTGRES_URL, POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_DATABASE: required for loading
        POSTGRES_HOST, POSTGRES_PORT: optional overrides
        ICON_PIPELINE_CONFIG: Optional YAML override file
    """
    load_dotenv()

    icons_root = os.getenv("ICONS_ROOT", DEFAULT_ICONS_ROOT)

    generation = GenerationConfig(
        api_key=os.getenv("GOOGLE_API_KEY"),
        model_name=os.getenv("GEMINI_MODEL_NAME", "gemini-1.5-flash"),
        embedding_model=os.getenv("GEMINI_EMBEDDING_MODEL", "models/text-embedding-004"),
        language=os.getenv("ICON_PROMPT_LANGUAGE", "English"),
        item_delay_seconds=_env_ms("ICON_ITEM_DELAY_MS", 1000)
    )

    paths = PathsConfig(
        icons_root=icons_root,
        library=os.getenv("ICON_LIBRARY", DEFAULT_LIBRARY),
        dataset_path=os.getenv("ICON_DATASET_PATH")
    )

    loader = LoaderConfig(
        batch_size=_env_int("ICON_BATCH_SIZE", 250),
        batch_delay_seconds=_env_ms("ICON_BATCH_DELAY_MS", 250),
        table_name=os.getenv("ICON_TABLE_NAME", "icons"),
        verify_each_record=_env_bool("ICON_VERIFY_EACH_RECORD", True)
    )

    port = os.getenv("POSTGRES_PORT")
    database = DatabaseConfig(
        url=os.getenv("POSTGRES_URL"),
        user=os.getenv("POSTGRES_USER"),
        password=os.getenv("POSTGRES_PASSWORD"),
        database=os.getenv("POSTGRES_DATABASE"),
        host=os.getenv("POSTGRES_HOST"),
        port=int(port) if port else None
    )

    config = PipelineConfig(
        generation=generation,
        paths=paths,
        loader=loader,
        database=database
    )

    overrides = load_overrides(config_path)
    _apply_section(config.generation, overrides.get("generation"), "generation")
    _apply_section(config.loader, overrides.get("loader"), "loader")
    if overrides.get("paths"):
        _apply_section(config.paths, overrides["paths"], "paths")
        if "dataset_path" not in overrides["paths"] and not os.getenv("ICON_DATASET_PATH"):
            config.paths.dataset_path = os.path.join(config.paths.icons_root, DATASET_FILENAME)

    validate_batch_size(config.loader.batch_size, "loader.batch_size")
    return config

"""
Local JSON dataset of generated icon metadata.

The dataset is a single pretty-printed JSON array of icon records. Every
save rewrites the whole file through a temporary file and an atomic rename,
so an interrupted write never leaves a truncated dataset behind.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from icon_catalog.core.exceptions import DatasetCorruptError

logger = logging.getLogger(__name__)

RECORD_FIELDS = ("name", "commonnames", "description", "tags", "categories", "library", "embedding")


def _string_list(data: Dict[str, Any], key: str) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' must be an array of strings")
    return list(value)


def _string(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


@dataclass
class IconRecord:
    """Generated metadata for a single icon."""
    name: str
    commonnames: List[str] = field(default_factory=list)
    description: str = ""
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    library: str = ""
    embedding: Optional[List[float]] = None
    # Keys written by other tools; carried through saves unchanged
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return bool(self.embedding)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {
            "name": self.name,
            "commonnames": list(self.commonnames),
            "description": self.description,
            "tags": list(self.tags),
            "categories": list(self.categories),
            "library": self.library,
        }
        if self.embedding is not None:
            data["embedding"] = list(self.embedding)
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IconRecord":
        """
        Build a record from a parsed JSON object.

        Raises:
            ValueError: If a known field has the wrong JSON type
        """
        if "name" not in data:
            raise ValueError("Icon record has no 'name'")

        embedding = data.get("embedding")
        if embedding is not None and not isinstance(embedding, list):
            raise ValueError("'embedding' must be an array of numbers")

        return cls(
            name=str(data["name"]),
            commonnames=_string_list(data, "commonnames"),
            description=_string(data, "description"),
            tags=_string_list(data, "tags"),
            categories=_string_list(data, "categories"),
            library=_string(data, "library"),
            embedding=[float(v) for v in embedding] if embedding is not None else None,
            extra={k: v for k, v in data.items() if k not in RECORD_FIELDS}
        )


@dataclass
class DatasetLoadResult:
    """Outcome of loading the dataset: freshly created or read from disk."""
    status: str  # "created" or "loaded"
    records: List[IconRecord]

    @property
    def created(self) -> bool:
        return self.status == "created"


class IconDatasetStore:
    """
    Reads and writes the accumulated icon dataset file.

    A missing file is created as an empty dataset. A file that exists but
    cannot be parsed raises DatasetCorruptError instead of being replaced.
    """

    def __init__(self, path: str):
        self.path = path

    def load(self) -> DatasetLoadResult:
        """
        Load the dataset, creating an empty one if the file does not exist.

        Returns:
            DatasetLoadResult with status "created" or "loaded"

        Raises:
            DatasetCorruptError: If the file exists but is not a valid dataset
        """
        if not os.path.exists(self.path):
            self.save([])
            logger.info(f"Created empty dataset at {self.path}")
            return DatasetLoadResult(status="created", records=[])

        with open(self.path, "r", encoding="utf-8") as f:
            raw = f.read()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Error reading dataset {self.path}: {e}")
            raise DatasetCorruptError(self.path, f"invalid JSON ({e})") from e

        if not isinstance(data, list):
            logger.error(f"Error reading dataset {self.path}: top-level value is not an array")
            raise DatasetCorruptError(self.path, "top-level value is not an array")

        records = []
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                raise DatasetCorruptError(self.path, f"entry {index} is not an object")
            try:
                records.append(IconRecord.from_dict(item))
            except (TypeError, ValueError) as e:
                raise DatasetCorruptError(self.path, f"entry {index}: {e}") from e

        return DatasetLoadResult(status="loaded", records=records)

    def read_or_create(self) -> List[IconRecord]:
        """Return the dataset records, creating an empty dataset if absent."""
        return self.load().records

    def save(self, records: List[IconRecord]):
        """
        Overwrite the dataset with the full ordered list of records.

        Writes to a temporary file in the same directory, then atomically
        replaces the dataset file.
        """
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        payload = json.dumps(
            [record.to_dict() for record in records],
            indent=2,
            ensure_ascii=False
        )

        fd, tmp_path = tempfile.mkstemp(
            prefix=".dataset-", suffix=".json.tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except Exception:
            logger.error(f"Error writing to dataset {self.path}", exc_info=True)
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    @staticmethod
    def contains(records: List[IconRecord], name: str) -> bool:
        return any(record.name == name for record in records)

    def append(self, record: IconRecord) -> bool:
        """
        Append a record unless one with the same name exists.

        Returns:
            True if the record was added, False if it was already present
        """
        records = self.read_or_create()
        if self.contains(records, record.name):
            logger.info(f'"{record.name}" already exists')
            return False

        records.append(record)
        self.save(records)
        return True

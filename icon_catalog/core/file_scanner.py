"""
Icon folder scanner.

Groups the SVG sources and JSON sidecar files of an icon folder by base
name. SVG files are only located here, never read. The grouping is computed once per scan and returned as an immutable
list of pairs.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

SVG_EXTENSION = ".svg"
METADATA_EXTENSION = ".json"
RESERVED_FILENAMES = {"dataset.json"}


@dataclass(frozen=True)
class IconFilePair:
    """An icon source and its optional sidecar metadata, keyed by base name."""
    name: str
    svg_path: Optional[str] = None
    metadata_path: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = field(default=None, compare=False)

    @property
    def has_svg(self) -> bool:
        return self.svg_path is not None

    @property
    def has_metadata(self) -> bool:
        return self.metadata is not None

    @property
    def is_complete(self) -> bool:
        return self.has_svg and self.has_metadata

    @property
    def missing_part(self) -> Optional[str]:
        """Extension of the missing counterpart, or None for complete pairs."""
        if not self.has_svg:
            return SVG_EXTENSION
        if not self.has_metadata:
            return METADATA_EXTENSION
        return None


def placeholder_metadata(name: str, library: str) -> Dict[str, Any]:
    """Minimal sidecar metadata for an icon that has none."""
    return {
        "name": name,
        "commonnames": [name],
        "description": "Icon description",
        "tags": [],
        "categories": [],
        "library": library,
    }


def _read_sidecar(path: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read metadata file {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Metadata file {path} is not a JSON object, ignoring it")
        return None
    return data


def scan_icon_directory(directory: str) -> List[IconFilePair]:
    """
    Group the icon files of a folder into pairs.

    Args:
        directory: Folder containing <name>.svg and optional <name>.json files

    Returns:
        Pairs ordered by base name
    """
    grouped: Dict[str, Dict[str, Any]] = {}

    for file_name in sorted(os.listdir(directory)):
        base_name, extension = os.path.splitext(file_name)
        extension = extension.lower()

        if extension not in (SVG_EXTENSION, METADATA_EXTENSION):
            continue
        if file_name in RESERVED_FILENAMES:
            continue

        path = os.path.join(directory, file_name)
        if not os.path.isfile(path):
            continue

        entry = grouped.setdefault(base_name, {"name": base_name})

        if extension == SVG_EXTENSION:
            entry["svg_path"] = path
        else:
            entry["metadata_path"] = path
            entry["metadata"] = _read_sidecar(path)

    pairs = [IconFilePair(**entry) for entry in grouped.values()]
    logger.debug(f"Scanned {directory}: {len(pairs)} icon names")
    return pairs


def log_pair_summary(pairs: List[IconFilePair]) -> Tuple[int, int]:
    """
    Log complete pairs with their tags/categories, then warn about incomplete ones.

    Returns:
        (complete_count, incomplete_count)
    """
    complete = [p for p in pairs if p.is_complete]
    incomplete = [p for p in pairs if not p.is_complete]

    for pair in complete:
        tags = ", ".join(pair.metadata.get("tags") or [])
        categories = ", ".join(pair.metadata.get("categories") or [])
        logger.info(f"# Icon **name:** {pair.name}\t**Tags:** {tags}\t**Categories:** {categories}")

    for pair in incomplete:
        logger.warning(
            f'The file "{pair.name}" does not have its corresponding pair '
            f'(missing {pair.name}{pair.missing_part})'
        )

    return len(complete), len(incomplete)

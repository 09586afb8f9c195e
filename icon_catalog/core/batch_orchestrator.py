"""
Batch Orchestrator for the Icon Catalog Pipeline.

Coordinates the pipeline components to render, describe, and store every
icon of a library folder, one icon at a time.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional

from icon_catalog.core.file_scanner import (
    IconFilePair,
    log_pair_summary,
    placeholder_metadata,
    scan_icon_directory,
)
from icon_catalog.core.exceptions import DatasetCorruptError
from icon_catalog.core.image_converter import ICON_SIZE, render_icon_png
from icon_catalog.core.metadata_generator import GeminiIconDescriber
from icon_catalog.core.throttle import FixedDelayThrottle, Throttle

logger = logging.getLogger(__name__)


ICON_PROMPT_TEMPLATE = """Will be provided with an image of the User Interface icon and a list of tags and categories associated with it.
Your task is to generate a JSON object with the following structure about the icon:
[{{
name: string, // provided name of the icon
commonnames: string[], // 1 to 3 alternative names.
description: string, // describe the icon and its meaning in the user interface.
tags: string[], // add the provided tags and propose new ones if necessary. 5 maximum.
categories: string[], // add the provided categories and propose new ones if necessary. 5 maximum.
}}]

- All the text must be in {language}.
- All descriptions must be concise and to the point, never start with "this icon represents" and go directly to the meaning of the icon.
- Prevent any prose.


# Icon
Icon name: {name}, Tags: {tags}, Categories: {categories}"""


def build_icon_prompt(name: str, metadata: Dict[str, Any], language: str = "English") -> str:
    """
    Build the Gemini prompt for one icon.

    Args:
        name: Icon name
        metadata: Sidecar metadata with optional "tags" and "categories" lists
        language: Language the model must answer in
    """
    return ICON_PROMPT_TEMPLATE.format(
        language=language,
        name=name,
        tags=", ".join(metadata.get("tags") or []),
        categories=", ".join(metadata.get("categories") or []),
    )


class IconBatchOrchestrator:
    """
    Main orchestration logic for the icon pipeline.

    Workflow per icon (sequential):
    1. Render <name>.png next to the SVG
    2. Write a placeholder <name>.json if the icon has no sidecar
    3. Build the prompt from name, tags and categories
    4. Describe the icon with Gemini and append it to the dataset
    5. Wait for the throttle before the next icon
    """

    def __init__(
        self,
        describer: GeminiIconDescriber,
        library: str,
        language: str = "English",
        throttle: Optional[Throttle] = None,
        icon_size: int = ICON_SIZE
    ):
        """
        Initialize the orchestrator.

        Args:
            describer: Gemini metadata generator
            library: Icon library tag used for placeholder sidecars
            language: Language the model must answer in
            throttle: Delay strategy between icons (default: fixed 1 second)
            icon_size: Edge length of the rendered PNG previews
        """
        self.describer = describer
        self.library = library
        self.language = language
        self.throttle = throttle or FixedDelayThrottle(1.0)
        self.icon_size = icon_size

        logger.info(f"IconBatchOrchestrator initialized for library '{library}' ({self.throttle!r})")

    async def process_directory(self, directory: str) -> Dict[str, Any]:
        """
        Process every icon in a library folder.

        A missing folder is created and the run ends without work.

        Args:
            directory: Library folder holding the SVG/JSON files

        Returns:
            Summary statistics for the run
        """
        if not os.path.isdir(directory):
            logger.error(f'The "{directory}" folder does not exist')
            os.makedirs(directory, exist_ok=True)
            logger.info(f'Created "{directory}" folder')
            summary = self._new_summary(0)
            summary["status"] = "created_directory"
            summary["completed_at"] = datetime.now(timezone.utc).isoformat()
            return summary

        pairs = scan_icon_directory(directory)
        log_pair_summary(pairs)

        summary = await self.process_pairs(pairs, directory)
        logger.info("Done")
        return summary

    async def process_pairs(self, pairs: List[IconFilePair], directory: str) -> Dict[str, Any]:
        """
        Process icon pairs one at a time.

        Pairs without an SVG are skipped. A failing icon is logged and the
        run continues with the next one.
        """
        summary = self._new_summary(len(pairs))

        for pair in pairs:
            if not pair.has_svg:
                continue

            try:
                status = await self.process_icon(pair, directory, summary)
                summary["processed"] += 1
                if status == "added":
                    summary["described"] += 1
                elif status == "exists":
                    summary["skipped_existing"] += 1
                else:
                    summary["failed"] += 1
                    summary["errors"].append(f"{pair.name}: description failed")

                await self.throttle.wait_async()

            except DatasetCorruptError:
                raise
            except Exception as e:
                error_msg = f'Error processing icon "{pair.name}": {e}'
                logger.error(error_msg, exc_info=True)
                summary["failed"] += 1
                summary["errors"].append(error_msg)

        summary["completed_at"] = datetime.now(timezone.utc).isoformat()
        summary["status"] = "success" if summary["failed"] == 0 else "partial"

        logger.info(
            f"Run complete: {summary['described']} described, "
            f"{summary['skipped_existing']} already in dataset, "
            f"{summary['failed']} failed"
        )
        return summary

    async def process_icon(
        self,
        pair: IconFilePair,
        directory: str,
        summary: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Render, prompt, and describe a single icon.

        Returns:
            Description status: "added", "exists" or "failed"
        """
        png_path = os.path.join(directory, f"{pair.name}.png")
        await asyncio.to_thread(
            render_icon_png, Path(pair.svg_path), png_path, self.icon_size
        )

        metadata = pair.metadata
        if metadata is None:
            metadata = placeholder_metadata(pair.name, self.library)
            if pair.metadata_path is None:
                logger.info(f'JSON file for "{pair.name}" does not exist. Creating it...')
                self._write_sidecar(os.path.join(directory, f"{pair.name}.json"), metadata)
                logger.info(f'Created temporary JSON file for "{pair.name}"')
                if summary is not None:
                    summary["placeholders_created"] += 1
            else:
                logger.warning(
                    f'Using placeholder metadata for "{pair.name}"; '
                    f"{pair.metadata_path} could not be read"
                )

        prompt = build_icon_prompt(pair.name, metadata, self.language)
        result = await self.describer.describe_icon(pair.name, prompt, png_path)
        return result.status

    @staticmethod
    def _write_sidecar(path: str, metadata: Dict[str, Any]):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2, ensure_ascii=False)

    @staticmethod
    def _new_summary(total_pairs: int) -> Dict[str, Any]:
        return {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "total_pairs": total_pairs,
            "processed": 0,
            "described": 0,
            "skipped_existing": 0,
            "failed": 0,
            "placeholders_created": 0,
            "errors": [],
        }

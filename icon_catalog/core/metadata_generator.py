"""
Gemini Metadata Generator for the Icon Catalog Pipeline.

Generates structured icon metadata (names, description, tags, categories)
from an icon preview with Gemini, then embeds a text summary of the result
and appends the completed record to the dataset.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

import google.generativeai as genai

from icon_catalog.core.dataset_store import IconDatasetStore, IconRecord
from icon_catalog.core.exceptions import MetadataGenerationError
from icon_catalog.core.image_converter import (
    ICON_SIZE,
    PNG_MIME_TYPE,
    encode_png_base64,
    render_icon_png,
)

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = ["name", "commonnames", "description", "tags", "categories"]

# Response schema: a JSON array holding one icon object
ICON_RESPONSE_SCHEMA: Dict[str, Any] = {
    "description": "Icon description",
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "name": {
                "type": "STRING",
                "description": "Name of the icon",
                "nullable": False,
            },
            "commonnames": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": "Common names for the icon",
                "nullable": False,
            },
            "description": {
                "type": "STRING",
                "description": "Description of the icon",
                "nullable": False,
            },
            "tags": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": "Tags associated with the icon",
                "nullable": False,
            },
            "categories": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": "Categories associated with the icon",
                "nullable": False,
            },
        },
        "required": REQUIRED_FIELDS,
    },
}


def format_icon_for_embedding(record: IconRecord) -> str:
    """Build the text summary that is sent to the embedding model."""
    return (
        f"# Icon\nname: **{record.name}** or {', '.join(record.commonnames)}"
        f"\t**Description:** {record.description}"
        f"\t**Tags:** {', '.join(record.tags)}"
        f"\t**Categories:** {', '.join(record.categories)}\n"
    )


def parse_icon_response(response_text: str) -> Dict[str, Any]:
    """
    Extract the first icon object from a Gemini JSON response.

    Raises:
        MetadataGenerationError: If the response is not a non-empty JSON array
            of objects carrying the required fields
    """
    text = response_text.strip()

    # Remove markdown code blocks if present
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:]).strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MetadataGenerationError(f"Response is not valid JSON: {e}") from e

    if isinstance(parsed, dict):
        parsed = [parsed]
    if not isinstance(parsed, list) or not parsed or not isinstance(parsed[0], dict):
        raise MetadataGenerationError("Response did not contain an icon object")

    icon = parsed[0]
    missing = [f for f in REQUIRED_FIELDS if f not in icon]
    if missing:
        raise MetadataGenerationError(f"Response is missing fields: {missing}")
    return icon


@dataclass
class DescriptionResult:
    """Outcome of describing one icon."""
    name: str
    status: str  # "added", "exists" or "failed"
    record: Optional[IconRecord] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "added"


class GeminiIconDescriber:
    """
    Icon metadata service using Gemini.

    For each icon it:
    - Skips names already present in the dataset
    - Generates name/commonnames/description/tags/categories from the preview
    - Embeds a text summary of the metadata
    - Appends the completed record to the dataset file
    """

    def __init__(
        self,
        api_key: str,
        library: str,
        store: IconDatasetStore,
        model_name: str = "gemini-1.5-flash",
        embedding_model: str = "models/text-embedding-004",
        temperature: float = 0.0,
        max_output_tokens: int = 256
    ):
        """
        Initialize the describer.

        Args:
            api_key: Gemini API key
            library: Icon library tag attached to every record
            store: Dataset the records are appended to
            model_name: Generative model used for metadata
            embedding_model: Embedding model used for the summary vector
            temperature: Generation temperature (0 requests deterministic output)
            max_output_tokens: Maximum tokens in the response
        """
        genai.configure(api_key=api_key)

        self.library = library
        self.store = store
        self.model_name = model_name
        self.embedding_model = embedding_model

        self.model = genai.GenerativeModel(
            model_name=model_name,
            generation_config=genai.GenerationConfig(
                temperature=temperature,
                max_output_tokens=max_output_tokens,
                response_mime_type="application/json",
                response_schema=ICON_RESPONSE_SCHEMA
            )
        )

        logger.info(f"GeminiIconDescriber initialized with model: {model_name}")

    def _generate_metadata(self, prompt: str, png_bytes: bytes) -> Dict[str, Any]:
        image_part = {
            "mime_type": PNG_MIME_TYPE,
            "data": encode_png_base64(png_bytes)
        }
        response = self.model.generate_content([image_part, prompt])
        return parse_icon_response(response.text)

    def _embed_text(self, text: str) -> List[float]:
        result = genai.embed_content(model=self.embedding_model, content=text)
        embedding = result["embedding"]
        if not embedding:
            raise MetadataGenerationError("Embedding model returned an empty vector")
        return [float(v) for v in embedding]

    async def describe_icon(
        self,
        name: str,
        prompt: str,
        image_path: str
    ) -> DescriptionResult:
        """
        Generate, embed, and store metadata for a single icon.

        Args:
            name: Icon name (dataset key)
            prompt: Instructions for the generative model
            image_path: Path to the icon preview (PNG or SVG)

        Returns:
            DescriptionResult with status "added", "exists" or "failed".
            Nothing is written to the dataset unless the status is "added".
        """
        # Corrupt datasets raise here rather than being overwritten below
        records = self.store.read_or_create()

        if self.store.contains(records, name):
            logger.info(f'"{name}" already exists')
            return DescriptionResult(name=name, status="exists")

        try:
            png_bytes = await asyncio.to_thread(
                render_icon_png, image_path, None, ICON_SIZE
            )

            icon_data = await asyncio.to_thread(
                self._generate_metadata, prompt, png_bytes
            )
            # The dataset is keyed by the file name, not the model's echo of it
            icon_data = {key: icon_data[key] for key in REQUIRED_FIELDS}
            icon_data["name"] = name
            icon_data["library"] = self.library

            record = IconRecord.from_dict(icon_data)
            logger.debug(f"Generated metadata for {name}: {record.to_dict()}")

            summary = format_icon_for_embedding(record)
            logger.debug(f"Embedding text for {name}: {summary!r}")

            record.embedding = await asyncio.to_thread(self._embed_text, summary)

        except Exception as e:
            logger.error(f'Error processing description for "{name}": {e}', exc_info=True)
            return DescriptionResult(name=name, status="failed", error=str(e))

        if not self.store.append(record):
            return DescriptionResult(name=name, status="exists")

        logger.info(f"{record.name} has been added to {self.store.path}")
        return DescriptionResult(name=name, status="added", record=record)

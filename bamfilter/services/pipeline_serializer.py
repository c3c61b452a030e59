"""
Pipeline serialization and deserialization.

Handles saving and loading of filter pipelines to/from JSON format.
Every filter is stored as its kind tag plus its configuration string.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from ..processing import FilterPipeline

logger = logging.getLogger(__name__)


class PipelineSerializer:
    """
    Serializes and deserializes FilterPipeline to/from JSON.

    Format:
    - ``format_version`` allows backward compatibility
    - ``pipeline`` holds the filter list in user order
    """

    # Format version for future compatibility
    FORMAT_VERSION = "1.0"

    @staticmethod
    def serialize(pipeline: FilterPipeline) -> Dict[str, Any]:
        """Convert FilterPipeline to a serializable dictionary."""
        return {
            "format_version": PipelineSerializer.FORMAT_VERSION,
            "pipeline": pipeline.to_dict(),
        }

    @staticmethod
    def deserialize(data: Dict[str, Any]) -> FilterPipeline:
        """Convert a dictionary back to a FilterPipeline."""
        version = data.get("format_version", "1.0")
        if version != PipelineSerializer.FORMAT_VERSION:
            raise ValueError(
                f"Unsupported pipeline format version: {version}. "
                f"Expected {PipelineSerializer.FORMAT_VERSION}"
            )

        pipeline_data = data.get("pipeline", {})
        if not isinstance(pipeline_data, dict):
            raise ValueError("Malformed pipeline data")
        return FilterPipeline.from_dict(pipeline_data)

    @staticmethod
    def save_to_file(pipeline: FilterPipeline, file_path: Path) -> None:
        """Save pipeline to JSON file."""
        data = PipelineSerializer.serialize(pipeline)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w") as f:
            json.dump(data, f, indent=2)
        logger.info("Saved pipeline with %d filter(s) to %s", len(pipeline), file_path)

    @staticmethod
    def load_from_file(file_path: Path) -> FilterPipeline:
        """Load pipeline from JSON file."""
        if not file_path.exists():
            raise FileNotFoundError(f"Pipeline file not found: {file_path}")

        with open(file_path, "r") as f:
            data = json.load(f)

        return PipelineSerializer.deserialize(data)

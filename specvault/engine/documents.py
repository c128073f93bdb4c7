"""Turn JSON/YAML source text into the structured value that gets versioned."""

import datetime
import json
from typing import Any

import yaml

from ..exceptions import ValidationError

SUPPORTED_EXTENSIONS = ("json", "yaml", "yml")


def _json_default(value: Any) -> str:
    # YAML timestamps and dates have no JSON form.
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    raise TypeError(f"Value of type {type(value).__name__} is not JSON serializable")


def normalize(value: Any) -> Any:
    """Round-trip *value* through JSON so it only holds JSON types."""
    try:
        return json.loads(json.dumps(value, default=_json_default))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Document is not representable as JSON: {e}", field="content") from e


def parse_document(text: str, extension: str) -> Any:
    """Parse document source according to its file extension."""
    ext = extension.lower().lstrip(".")
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValidationError(f"Unsupported file extension: {extension}", field="extension")

    try:
        if ext == "json":
            value = json.loads(text)
        else:
            value = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot parse {ext.upper()} document: {e}", field="text") from e

    return normalize(value)

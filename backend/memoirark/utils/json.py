"""JSON helpers for upload decoding and stored metadata."""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def load_json_bytes(content: bytes) -> Any:
    """Decode raw upload bytes as JSON.

    Accepts a UTF-8 byte-order mark. Raises ValueError on anything that is
    not valid UTF-8 JSON.
    """
    try:
        return json.loads(content.decode("utf-8-sig"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid JSON: {e}") from e


def load_metadata(raw: str | None) -> dict[str, Any]:
    """Read an artifact metadata column back into a dict.

    NULL, blank and non-object values all read as {}. A column that is not
    valid JSON is logged and also reads as {}.
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Unreadable artifact metadata: %.80r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}

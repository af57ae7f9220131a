"""JSON serialization for settings files.

Settings are written the way the host application writes them: two-space
indentation, non-ASCII characters kept as-is, key order preserved, and a
trailing newline.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..exceptions import IntegrityError

DEFAULT_INDENT = 2
EMPTY_SETTINGS_CONTENT = '{"hooks": {}}'


def create_empty_settings() -> Dict[str, Any]:
    """Return a new empty legacy settings document."""
    return {"hooks": {}}


def dumps_settings(data: Dict[str, Any], indent: int = DEFAULT_INDENT) -> str:
    """Serialize a settings document to the on-disk text form."""
    return json.dumps(
        data,
        indent=indent,
        ensure_ascii=False,
        separators=(",", ": "),
    ) + "\n"


def loads_settings(content: str, path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Parse settings text into a dict.

    Args:
        content: Raw file content
        path: File the content came from, used in error messages

    Raises:
        IntegrityError: If the content is not valid JSON or not a JSON object
    """
    source = f" in {path}" if path else ""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise IntegrityError(
            f"Invalid JSON{source}: {e.msg} (line {e.lineno}, column {e.colno})",
            path=path,
            original_error=e,
        )

    if not isinstance(data, dict):
        raise IntegrityError(
            f"Settings{source} must contain a JSON object, got {type(data).__name__}",
            path=path,
        )

    return data


def canonical_json(value: Any) -> str:
    """Key-order independent serialization used to compare configurations."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))

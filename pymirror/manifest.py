"""Parsing of update manifests.

A manifest is a JSON document stored as ``updates.json`` in the root of an
update source. It is either a list of rule records or an object with an
``updates`` list::

    {
      "updates": [
        {
          "name": "Sideloader modpack",
          "serverPath": "/mods/Sideloader Modpack",
          "clientPath": "mods/Sideloader Modpack",
          "recursive": true,
          "removeExtraClientFiles": true,
          "versioning": "size"
        }
      ]
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from .exceptions import ManifestError, MirrorConfigError
from .models import UpdateRule, VersioningMode

logger = logging.getLogger(__name__)

# camelCase key -> snake_case alias accepted as well
_KEY_ALIASES = {
    "serverPath": "server_path",
    "clientPath": "client_path",
    "removeExtraClientFiles": "remove_extra_client_files",
}


def _get(record: dict, key: str, default: Any = None) -> Any:
    if key in record:
        return record[key]
    alias = _KEY_ALIASES.get(key)
    if alias and alias in record:
        return record[alias]
    return default


def _parse_bool(value: Any, key: str, index: int) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ManifestError(f"Record {index}: {key} must be a boolean, got {value!r}")


def parse_update_rule(
    record: dict,
    index: int,
    origin: str,
    priority: int,
    client_root: Path,
) -> UpdateRule:
    """Convert one manifest record into an UpdateRule.

    Args:
        record: Decoded JSON object
        index: Position of the record in the manifest (for error messages)
        origin: URI of the source the manifest came from
        priority: Priority of that source
        client_root: Directory relative client paths are resolved against

    Returns:
        Parsed UpdateRule

    Raises:
        ManifestError: If a required key is missing or has the wrong type
    """
    if not isinstance(record, dict):
        raise ManifestError(f"Record {index}: expected an object, got {type(record).__name__}")

    server_path = _get(record, "serverPath")
    client_path = _get(record, "clientPath")
    if not isinstance(server_path, str):
        raise ManifestError(f"Record {index}: serverPath is required")
    if not isinstance(client_path, str) or not client_path.strip():
        raise ManifestError(f"Record {index}: clientPath is required")

    local = Path(client_path).expanduser()
    if not local.is_absolute():
        local = client_root / local

    name = _get(record, "name")
    if name is not None and not isinstance(name, str):
        raise ManifestError(f"Record {index}: name must be a string")

    try:
        versioning = VersioningMode.parse(_get(record, "versioning", "size"))
    except MirrorConfigError as e:
        raise ManifestError(f"Record {index}: {e}") from e

    return UpdateRule(
        server_path=server_path,
        client_path=local.resolve(),
        recursive=_parse_bool(_get(record, "recursive", True), "recursive", index),
        remove_extraneous=_parse_bool(
            _get(record, "removeExtraClientFiles", False),
            "removeExtraClientFiles",
            index,
        ),
        versioning=versioning,
        name=name or None,
        origin=origin,
        priority=priority,
    )


def parse_update_manifest(
    data: Union[bytes, str],
    origin: str,
    priority: int,
    client_root: Optional[Path] = None,
) -> list[UpdateRule]:
    """Parse a manifest into rules, preserving record order.

    Args:
        data: Raw manifest content
        origin: URI of the source the manifest came from
        priority: Priority attached to every rule of this source
        client_root: Base for relative client paths (defaults to the cwd)

    Returns:
        List of UpdateRule objects

    Raises:
        ManifestError: If the document is not valid JSON or a record is invalid
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ManifestError(f"Manifest from {origin} is not valid UTF-8") from e

    try:
        document = json.loads(data)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Manifest from {origin} is not valid JSON: {e}") from e

    if isinstance(document, dict):
        records = document.get("updates")
    else:
        records = document
    if not isinstance(records, list):
        raise ManifestError(f"Manifest from {origin} has no list of updates")

    root = client_root or Path.cwd()
    rules = [
        parse_update_rule(record, index, origin, priority, root)
        for index, record in enumerate(records)
    ]
    logger.debug(f"Parsed {len(rules)} update rule(s) from {origin}")
    return rules


def load_update_manifest(
    path: Path,
    priority: int = 0,
    client_root: Optional[Path] = None,
) -> list[UpdateRule]:
    """Parse a manifest stored on the local filesystem.

    Args:
        path: Manifest file
        priority: Priority attached to every rule
        client_root: Base for relative client paths (defaults to the
            manifest's directory)

    Returns:
        List of UpdateRule objects
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ManifestError(f"Failed to read manifest {path}: {e}") from e
    return parse_update_manifest(
        data,
        origin=path.as_uri() if path.is_absolute() else str(path),
        priority=priority,
        client_root=client_root or path.parent,
    )

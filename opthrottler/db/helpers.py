from __future__ import annotations

import copy
import re
from typing import Any, Mapping


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that a table or column name is safe for SQL interpolation.

    Identifiers are restricted to letters, digits and underscores, starting
    with a letter or underscore, and at most 64 characters (MySQL's limit).
    They must still come from configuration, never from oplog content.

    Raises:
        TypeError: If identifier is not a string
        ValueError: If identifier is empty, too long or contains unsafe characters
    """
    if not isinstance(name, str):
        raise TypeError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValueError(f"{identifier_type} cannot be empty")

    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", name):
        raise ValueError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > 64:
        raise ValueError(f"{identifier_type} {name!r} exceeds the 64-character limit")

    return name


def is_operator_update(diff: Mapping[str, Any]) -> bool:
    """True if the update is a $-operator diff rather than a replacement document."""
    return any(key.startswith("$") for key in diff)


def apply_update(document: Mapping[str, Any], diff: Mapping[str, Any]) -> dict[str, Any]:
    """
    Return a new document with an oplog update applied, following mongod.

    A diff without $-keys replaces the whole document but keeps its _id.
    Otherwise only $set and $unset are understood; their keys are dotted
    paths where numeric parts index into arrays ("tags.1").

    Raises:
        ValueError: On mixed operator/replacement diffs, unknown operators,
                    or paths that traverse a non-container value
    """
    if not is_operator_update(diff):
        replacement = dict(diff)
        if "_id" in document:
            replacement["_id"] = document["_id"]
        return replacement

    extra = [key for key in diff if key not in ("$set", "$unset")]
    if extra:
        raise ValueError(f"Unsupported update keys {sorted(extra)!r}")

    updated = copy.deepcopy(dict(document))
    for path, value in (diff.get("$set") or {}).items():
        _set_path(updated, path, copy.deepcopy(value))
    for path in diff.get("$unset") or {}:
        _unset_path(updated, path)
    return updated


def _set_path(doc: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    container: Any = doc
    for i, part in enumerate(parts):
        last = i == len(parts) - 1
        if isinstance(container, list):
            if not part.isdigit():
                raise ValueError(f"Cannot use non-numeric part {part!r} of {path!r} on an array")
            idx = int(part)
            if idx >= len(container):
                container.extend([None] * (idx + 1 - len(container)))
            if last:
                container[idx] = value
            elif container[idx] is None:
                container[idx] = {}
            container = container[idx]
        elif isinstance(container, dict):
            if last:
                container[part] = value
            else:
                container = container.setdefault(part, {})
        else:
            raise ValueError(f"Cannot create field {part!r} of {path!r} in a non-document value")


def _unset_path(doc: dict[str, Any], path: str) -> None:
    parts = path.split(".")
    container: Any = doc
    for part in parts[:-1]:
        if isinstance(container, list) and part.isdigit() and int(part) < len(container):
            container = container[int(part)]
        elif isinstance(container, dict) and part in container:
            container = container[part]
        else:
            return  # nothing to unset

    leaf = parts[-1]
    if isinstance(container, dict):
        container.pop(leaf, None)
    elif isinstance(container, list) and leaf.isdigit() and int(leaf) < len(container):
        # mongod nulls array slots instead of shifting the array
        container[int(leaf)] = None

"""Thin orjson wrapper used for every JSON frame and payload."""

from __future__ import annotations

from typing import Any

import orjson

JSONDecodeError = orjson.JSONDecodeError


def loads(data: bytes | bytearray | memoryview | str) -> Any:
    """Decode JSON from bytes or str."""
    return orjson.loads(data)


def dumps(obj: Any) -> str:
    """Encode to a compact JSON string."""
    return orjson.dumps(obj, option=orjson.OPT_NON_STR_KEYS).decode("utf-8")


def dumps_bytes(obj: Any) -> bytes:
    """Encode to compact JSON bytes."""
    return orjson.dumps(obj, option=orjson.OPT_NON_STR_KEYS)


def dumps_pretty(obj: Any) -> str:
    """Encode with two-space indentation, for display."""
    return orjson.dumps(
        obj,
        option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS,
    ).decode("utf-8")

import json
from enum import Enum
from typing import Any

from .errors import BodyDecodeError


class BodyKind(Enum):
    STRUCTURED = "structured"
    TEXT = "text"
    RAW_BYTES = "raw_bytes"


def infer_kind(path: str) -> BodyKind:
    if path.endswith(".json"):
        return BodyKind.STRUCTURED
    if path.endswith(".txt"):
        return BodyKind.TEXT
    return BodyKind.RAW_BYTES


def _reject_constant(name: str) -> Any:
    raise ValueError(f"'{name}' is not valid JSON")


def _decode_text(buffer: bytes) -> str:
    # utf-8-sig drops a leading byte order mark, the same as a browser TextDecoder.
    return bytes(buffer).decode("utf-8-sig", errors="replace")


def decode(buffer: bytes, expected_kind: BodyKind | None = None, target_path: str = "") -> Any:
    kind = expected_kind if expected_kind is not None else infer_kind(target_path)

    if kind is BodyKind.RAW_BYTES:
        return bytes(buffer)

    text = _decode_text(buffer)
    if kind is BodyKind.TEXT:
        return text

    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError as e:
        raise BodyDecodeError(f"Failed to parse JSON response body: {e}") from e

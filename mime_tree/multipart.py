"""
Splitting of multipart bodies on their boundary delimiters (RFC 2046 5.1.1).
"""

from __future__ import annotations

import re
from typing import List

from .errors import FormatError
from .types import Entity


def _delimiter(boundary: str) -> "re.Pattern[bytes]":
    # The line break in front of a delimiter belongs to the delimiter, not
    # to the preceding part.
    marker = re.escape(boundary.encode("utf-8", "surrogateescape"))
    return re.compile(rb"(?:\A|\r?\n)--" + marker + rb"(--)?[ \t]*(?=\r?\n|\Z)")


def _skip_newline(data: bytes, pos: int) -> int:
    if data.startswith(b"\r\n", pos):
        return pos + 2
    if data.startswith(b"\n", pos):
        return pos + 1
    return pos


def split_parts(body: bytes, boundary: str) -> List[bytes]:
    """
    Return the raw bytes of every body part between the delimiters of
    ``boundary``. The preamble and epilogue are dropped. When the close
    delimiter is missing the last part runs to the end of ``body``.
    """
    parts: List[bytes] = []
    start = None
    for m in _delimiter(boundary).finditer(body):
        if start is not None:
            parts.append(body[start:m.start()])
        if m.group(1):
            return parts
        start = _skip_newline(body, m.end())
    if start is not None:
        parts.append(body[start:])
    return parts


def require_boundary(entity: Entity) -> str:
    """
    Boundary parameter of a multipart entity; raises FormatError when the
    entity does not declare one.
    """
    ct = entity.content_type
    if ct is None or not ct.boundary:
        raise FormatError("Multipart entity has not required 'boundary' parameter.")
    return ct.boundary


__all__ = ["require_boundary", "split_parts"]

from __future__ import annotations

import re
from email.parser import BytesHeaderParser
from typing import Tuple

from .errors import FormatError
from .log import get_logger
from .multipart import require_boundary, split_parts
from .types import Body, Entity, LeafBody, MultipartBody

log = get_logger(__name__)

# Deeper multipart nesting is rejected instead of recursing without bound.
MAX_DEPTH = 64

_HEAD_END = re.compile(rb"\r?\n\r?\n")

# ------------------ Public API ------------------

def parse_message(raw: bytes) -> Entity:
    """
    Build the entity tree of a complete message given its raw bytes.

    Raises FormatError when a multipart entity lacks its boundary parameter.
    """
    root = parse_entity(raw)
    log.debug("parsed message: %d entities", sum(1 for _ in root.walk()))
    return root

def parse_entity(raw: bytes, default_type: str = "text/plain", depth: int = 0) -> Entity:
    """
    Parse one entity (headers and body). Children are parsed recursively.
    """
    head, body = _split_head(raw)
    headers = BytesHeaderParser().parsebytes(head)
    entity = Entity.from_headers(headers, raw=raw, default_type=default_type)
    entity.body = _parse_body(entity, body, depth)
    return entity

def parse_children(owner: Entity, body: bytes, boundary: str, depth: int = 0) -> Tuple[Entity, ...]:
    """
    Split a multipart body and build its ordered children. Each child gets
    ``owner`` as its parent.
    """
    if depth >= MAX_DEPTH:
        raise FormatError(f"Multipart nesting exceeds {MAX_DEPTH} levels.")
    default_type = "message/rfc822" if owner.mime_type == "multipart/digest" else "text/plain"
    children = []
    for chunk in split_parts(body, boundary):
        child = parse_entity(chunk, default_type=default_type, depth=depth + 1)
        child.set_parent(owner)
        children.append(child)
    return tuple(children)

# ------------------ utilities ------------------

def _parse_body(entity: Entity, body: bytes, depth: int) -> Body:
    mime = entity.mime_type
    if mime == "multipart/signed":
        from .signed import SignedBody

        return SignedBody.parse(entity, body, depth)
    if mime.startswith("multipart/"):
        boundary = require_boundary(entity)
        return MultipartBody(
            subtype=entity.content_type.subtype,
            boundary=boundary,
            parts=parse_children(entity, body, boundary, depth),
        )
    return LeafBody(encoded=body, transfer_encoding=entity.content_transfer_encoding)

def _split_head(raw: bytes) -> Tuple[bytes, bytes]:
    """
    Split an entity at the first empty line. An entity that starts with an
    empty line has no headers.
    """
    for blank in (b"\r\n", b"\n"):
        if raw.startswith(blank):
            return b"", raw[len(blank):]
    m = _HEAD_END.search(raw)
    if not m:
        return raw, b""
    return raw[:m.start()], raw[m.end():]

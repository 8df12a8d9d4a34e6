from __future__ import annotations

from dataclasses import dataclass, field
from email.message import Message
from email.utils import collapse_rfc2231_value
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple, Union

from .decoder import decode_header_str, decode_transfer

if TYPE_CHECKING:
    from .signed import SignedBody


def _header_params(msg: Message, header: str) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for key, value in (msg.get_params(header=header) or [])[1:]:
        # RFC 2231 encoded values come back as (charset, language, value).
        params[key.strip().lower()] = value if isinstance(value, str) else collapse_rfc2231_value(value)
    return params


@dataclass(frozen=True)
class ContentType:
    """
    Parsed Content-Type header value, e.g. ``multipart/signed; boundary=x``.
    """
    type: str
    subtype: str
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def mime_type(self) -> str:
        return f"{self.type}/{self.subtype}"

    @property
    def boundary(self) -> Optional[str]:
        value = self.params.get("boundary")
        return value.rstrip() if value else None

    def param(self, name: str) -> Optional[str]:
        return self.params.get(name.lower())

    @classmethod
    def from_message(cls, msg: Message) -> Optional["ContentType"]:
        if msg.get("Content-Type") is None:
            return None
        maintype, _, subtype = msg.get_content_type().partition("/")
        return cls(maintype, subtype, _header_params(msg, "content-type"))


@dataclass(frozen=True)
class ContentDisposition:
    disposition: str
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def filename(self) -> Optional[str]:
        value = self.params.get("filename")
        return decode_header_str(value) if value else None

    @classmethod
    def from_message(cls, msg: Message) -> Optional["ContentDisposition"]:
        if msg.get("Content-Disposition") is None:
            return None
        return cls(msg.get_content_disposition() or "", _header_params(msg, "content-disposition"))


@dataclass(frozen=True)
class LeafBody:
    """
    Body of a non-multipart entity, kept exactly as it was transmitted.
    """
    encoded: bytes = field(repr=False)
    transfer_encoding: Optional[str] = None

    @property
    def data(self) -> bytes:
        """Payload with the Content-Transfer-Encoding removed."""
        return decode_transfer(self.encoded, self.transfer_encoding)


@dataclass(frozen=True)
class MultipartBody:
    """
    Ordered, boundary-delimited children of a multipart entity.

    ``parts`` is fixed when the body is built; there are no operations that
    add, remove or reorder children afterwards.
    """
    subtype: str
    boundary: str
    parts: Tuple["Entity", ...] = ()

    def __len__(self) -> int:
        return len(self.parts)

    def __getitem__(self, index: int) -> "Entity":
        return self.parts[index]

    def __iter__(self) -> Iterator["Entity"]:
        return iter(self.parts)

    def index_of(self, entity: "Entity") -> int:
        """
        Zero-based position of ``entity`` among the children, matched by
        identity. Returns -1 when it is not a child of this body.
        """
        for i, part in enumerate(self.parts):
            if part is entity:
                return i
        return -1


Body = Union[LeafBody, MultipartBody, "SignedBody"]


@dataclass(eq=False)
class Entity:
    """
    One MIME part: its headers, its body and a link to the enclosing
    entity. Header values that were not present are ``None``.
    """
    headers: Message = field(repr=False)
    raw: bytes = field(default=b"", repr=False)
    default_type: str = "text/plain"
    content_type: Optional[ContentType] = None
    content_disposition: Optional[ContentDisposition] = None
    content_language: Optional[str] = None
    content_location: Optional[str] = None
    content_transfer_encoding: Optional[str] = None
    body: Optional[Body] = field(default=None, repr=False)
    _parent: Optional["Entity"] = field(default=None, init=False, repr=False)

    @classmethod
    def from_headers(cls, headers: Message, raw: bytes = b"", default_type: str = "text/plain") -> "Entity":
        cte = headers.get("Content-Transfer-Encoding")
        return cls(
            headers=headers,
            raw=raw,
            default_type=default_type,
            content_type=ContentType.from_message(headers),
            content_disposition=ContentDisposition.from_message(headers),
            content_language=_strip_or_none(headers.get("Content-Language")),
            content_location=_strip_or_none(headers.get("Content-Location")),
            content_transfer_encoding=cte.strip().lower() if cte else None,
        )

    @property
    def mime_type(self) -> str:
        """Declared ``type/subtype``, or the default when none is declared."""
        return self.content_type.mime_type if self.content_type else self.default_type

    @property
    def parent(self) -> Optional["Entity"]:
        return self._parent

    def set_parent(self, parent: "Entity") -> None:
        if self._parent is not None:
            raise RuntimeError("entity parent is already set")
        self._parent = parent

    @property
    def is_multipart(self) -> bool:
        return self.body is not None and not isinstance(self.body, LeafBody)

    @property
    def parts(self) -> Tuple["Entity", ...]:
        if self.is_multipart:
            return self.body.parts
        return ()

    def to_bytes(self) -> bytes:
        """
        The entity as transmitted: its own headers and body, without the
        surrounding boundary lines of the parent.
        """
        return self.raw

    def walk(self) -> Iterator["Entity"]:
        """Depth-first iteration over this entity and its descendants in document order."""
        stack: List[Entity] = [self]
        while stack:
            e = stack.pop()
            yield e
            stack.extend(reversed(e.parts))


def _strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


__all__ = ["Body", "ContentDisposition", "ContentType", "Entity", "LeafBody", "MultipartBody"]

"""MIME entity trees, S/MIME multipart/signed verification and IMAP part specifiers."""

from .errors import FormatError, MimeError
from .types import ContentDisposition, ContentType, Entity, LeafBody, MultipartBody
from .parser import parse_message
from .signed import SignedBody
from .imap import iter_part_specifiers, part_specifier

__all__ = [
    "ContentDisposition",
    "ContentType",
    "Entity",
    "FormatError",
    "LeafBody",
    "MimeError",
    "MultipartBody",
    "SignedBody",
    "iter_part_specifiers",
    "parse_message",
    "part_specifier",
]

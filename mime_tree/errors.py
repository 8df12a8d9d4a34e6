"""Exceptions raised while building a MIME entity tree."""

from __future__ import annotations


class MimeError(Exception):
    """Base class for mime_tree errors."""


class FormatError(MimeError, ValueError):
    """
    The message structure cannot be parsed, e.g. a multipart entity without
    the required ``boundary`` parameter.
    """


__all__ = ["MimeError", "FormatError"]

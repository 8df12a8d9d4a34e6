"""IMAP addressing of entities inside a message (RFC 3501 6.4.5)."""

from __future__ import annotations

from typing import Iterator, Tuple

from .types import Entity


def part_specifier(entity: Entity) -> str:
    """
    Return the ``FETCH BODY[part-specifier]`` value for ``entity``.

    The tree root is always ``"1"``; every level below it appends the
    1-based position of the entity among its parent's children, e.g. the
    second child of the third top-level child is ``"1.3.2"``.
    """
    suffix = ""
    node = entity
    parent = node.parent
    while parent is not None:
        index = parent.body.index_of(node)
        if index < 0:
            raise LookupError("entity is not among its parent's parts")
        suffix = f".{index + 1}{suffix}"
        node, parent = parent, parent.parent
    # multipart message always starts with "1." and children after.
    return "1" + suffix


def iter_part_specifiers(root: Entity) -> Iterator[Tuple[str, Entity]]:
    """
    Yield ``(part_specifier, entity)`` for every entity under ``root`` in
    document order.
    """
    stack = [(part_specifier(root), root)]
    while stack:
        spec, entity = stack.pop()
        yield spec, entity
        for i in range(len(entity.parts), 0, -1):
            stack.append((f"{spec}.{i}", entity.parts[i - 1]))


__all__ = ["iter_part_specifiers", "part_specifier"]

"""
safetravels/core/tag_catalog.py — Fixed catalog of allowed report tags
Built once at startup from configuration. There is no mutation path:
adding a tag is a deployment change.
"""
from __future__ import annotations

from typing import Any, Iterable, Iterator

from safetravels.core.errors import ConfigurationError

# Allowed tag values (prevents injection, keeps reports consistent)
DEFAULT_TAGS: tuple[str, ...] = (
    "Harassment",
    "Welcoming",
    "Police Presence",
    "Protest",
    "Crowded",
    "Quiet",
    "Other",
)


class TagCatalog:
    """Immutable, ordered set of permitted tags."""

    __slots__ = ("_tags", "_members")

    def __init__(self, tags: Iterable[Any] = DEFAULT_TAGS) -> None:
        ordered = tuple(tags)
        if not ordered:
            raise ConfigurationError("Tag catalog must contain at least one tag.")
        seen: set[str] = set()
        for tag in ordered:
            if not isinstance(tag, str) or not tag.strip():
                raise ConfigurationError(f"Invalid tag in catalog: {tag!r}")
            if tag != tag.strip():
                raise ConfigurationError(f"Tag has surrounding whitespace: {tag!r}")
            if tag in seen:
                raise ConfigurationError(f"Duplicate tag in catalog: {tag!r}")
            seen.add(tag)
        object.__setattr__(self, "_tags", ordered)
        object.__setattr__(self, "_members", frozenset(ordered))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("TagCatalog is immutable")

    @property
    def tags(self) -> tuple[str, ...]:
        return self._tags

    def as_list(self) -> list[str]:
        """Fresh list copy, safe to hand to callers."""
        return list(self._tags)

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and tag in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __repr__(self) -> str:
        return f"TagCatalog({list(self._tags)!r})"

"""Ordered tag sets shared by upstream metric filters and sink writes."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping


class TagSet(Mapping[str, str]):
    """An ordered, immutable ``tag-key -> tag-value`` association.

    Keys are unique.  Equality and hashing ignore insertion order, while
    iteration and ``str()`` follow it so that log lines are deterministic::

        >>> str(TagSet([("router", "R1"), ("node", "N1")]))
        'router=R1,node=N1'
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[tuple[str, str]] | Mapping[str, str] = ()) -> None:
        pairs = list(items.items()) if isinstance(items, Mapping) else list(items)
        seen: set[str] = set()
        for key, _ in pairs:
            if key in seen:
                raise ValueError(f"Duplicate tag key: {key!r}")
            seen.add(key)
        self._items: tuple[tuple[str, str], ...] = tuple((str(k), str(v)) for k, v in pairs)

    # -- Mapping protocol ------------------------------------------------------

    def __getitem__(self, key: str) -> str:
        for k, v in self._items:
            if k == key:
                return v
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return (k for k, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TagSet):
            return dict(self._items) == dict(other._items)
        if isinstance(other, Mapping):
            return dict(self._items) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._items))

    def __repr__(self) -> str:
        return f"TagSet({list(self._items)!r})"

    def __str__(self) -> str:
        return ",".join(f"{k}={v}" for k, v in self._items)

    # -- Derivation --------------------------------------------------------------

    def with_tag(self, key: str, value: str) -> TagSet:
        """Return a copy with *key* appended (or replaced in place)."""
        if key in self:
            return TagSet((k, value if k == key else v) for k, v in self._items)
        return TagSet((*self._items, (key, value)))

    def without(self, *keys: str) -> TagSet:
        """Return a copy with *keys* removed."""
        return TagSet((k, v) for k, v in self._items if k not in keys)

    def as_dict(self) -> dict[str, str]:
        return dict(self._items)

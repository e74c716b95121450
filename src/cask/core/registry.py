"""Tag index used by compiler passes to discover participating services.

The index is a read-only snapshot of ``tag name -> [(service id, attributes)]``
taken from the container's definitions. The container rebuilds it before each
compiler pass so a pass always sees the graph as left by the previous one,
and no pass needs to enumerate definitions itself.

Example:
    >>> index = TagIndex.from_definitions(container.definitions)
    >>> for tagged in index.find("cask.dbal.schema_filter"):
    ...     print(tagged.service_id, tagged.attributes.get("connection"))
    >>>
    >>> # Highest priority first, registration order within equal priority
    >>> listeners = index.find_sorted("cask.orm.entity_listener")
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping

from .definition import Definition


@dataclass(frozen=True)
class TaggedService:
    """One tag occurrence on one service."""

    service_id: str
    attributes: Mapping[str, Any]
    abstract: bool = False

    @property
    def priority(self) -> int:
        return int(self.attributes.get("priority", 0) or 0)


class TagIndex:
    """Ordered, read-only mapping from tag name to tagged services."""

    def __init__(self, entries: Iterable[tuple[str, TaggedService]] = ()):
        self._by_tag: dict[str, list[TaggedService]] = defaultdict(list)
        self._by_service: dict[str, set[str]] = defaultdict(set)

        for tag, tagged in entries:
            self._by_tag[tag].append(tagged)
            self._by_service[tagged.service_id].add(tag)

    @classmethod
    def from_definitions(cls, definitions: Mapping[str, Definition]) -> TagIndex:
        """Build an index from definitions, in definition registration order.

        Abstract definitions are recorded but only returned on request, so a
        pass can reject them instead of silently skipping them.
        """
        entries = []
        for service_id, definition in definitions.items():
            for tag, occurrences in definition.tags.items():
                for attributes in occurrences:
                    tagged = TaggedService(service_id, dict(attributes), definition.abstract)
                    entries.append((tag, tagged))
        return cls(entries)

    def find(self, tag: str, include_abstract: bool = False) -> list[TaggedService]:
        """Return every occurrence of a tag in registration order."""
        return [
            tagged
            for tagged in self._by_tag.get(tag, ())
            if include_abstract or not tagged.abstract
        ]

    def find_sorted(self, tag: str, include_abstract: bool = False) -> list[TaggedService]:
        """Return occurrences by descending priority.

        The sort is stable so equal priorities keep registration order.
        """
        return sorted(self.find(tag, include_abstract), key=lambda tagged: -tagged.priority)

    def service_ids(self, tag: str) -> dict[str, list[Mapping[str, Any]]]:
        """Group a tag's occurrences by service id."""
        grouped: dict[str, list[Mapping[str, Any]]] = {}
        for tagged in self.find(tag):
            grouped.setdefault(tagged.service_id, []).append(tagged.attributes)
        return grouped

    def tags_of(self, service_id: str) -> set[str]:
        return set(self._by_service.get(service_id, ()))

    def __contains__(self, tag: str) -> bool:
        return bool(self.find(tag))

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_tag)

    def __len__(self) -> int:
        return len(self._by_tag)

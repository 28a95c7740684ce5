"""In-memory grouping of scanned messages."""

from __future__ import annotations

from .models import Group, MessageRef


class BucketAggregator:
    """Groups messages by classification key.

    Written to by a single scanning thread only.  Groups keep the order in
    which their key was first seen, so sorting by count is stable.
    """

    def __init__(self) -> None:
        self._groups: dict[str, Group] = {}
        self.total = 0

    def observe(self, ref: MessageRef, key: str) -> Group:
        group = self._groups.get(key)
        if group is None:
            group = self._groups[key] = Group(key=key)
        group.add(ref)
        self.total += 1
        return group

    def __len__(self) -> int:
        return len(self._groups)

    def __contains__(self, key: str) -> bool:
        return key in self._groups

    def get(self, key: str) -> Group | None:
        return self._groups.get(key)

    def groups(self) -> list[Group]:
        return list(self._groups.values())

    def ranked(self) -> list[Group]:
        """Groups by descending count; ties keep first-seen order."""
        return rank_groups(self._groups.values())


def rank_groups(groups) -> list[Group]:
    return sorted(groups, key=lambda g: -g.count)

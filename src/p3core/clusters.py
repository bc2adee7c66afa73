"""
Transitive closure over a stream of object pairs.

Each pair says two objects (roles, protein families) belong together; the
builder merges pairs into maximal connected components and keeps the full
member list of every component.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .genomic_types import ObjectPair

logger = logging.getLogger(__name__)


@dataclass
class Cluster:
    """A finished cluster: its 1-based ID and its members in insertion order."""

    cluster_id: int
    members: List[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)

    def joined(self, delimiter: str = "::") -> str:
        return delimiter.join(self.members)


class ClusterBuilder:
    """
    Online union of pairs without path compression.

    Group numbers are dense and assigned in order of discovery. Merging two
    groups moves every member of the second into the first and leaves the
    second as an empty placeholder that is never reused.
    """

    def __init__(self) -> None:
        self._object_map: Dict[str, int] = {}
        self._group_list: List[List[str]] = []

    def add_pair(self, obj1: str, obj2: str) -> None:
        group1 = self._object_map.get(obj1)
        group2 = self._object_map.get(obj2)
        if group1 is not None and group2 is None:
            self._object_map[obj2] = group1
            self._group_list[group1].append(obj2)
        elif group1 is None and group2 is not None:
            self._object_map[obj1] = group2
            self._group_list[group2].append(obj1)
        elif group1 is None and group2 is None:
            new_group = len(self._group_list)
            members = [obj1] if obj1 == obj2 else [obj1, obj2]
            self._group_list.append(members)
            self._object_map[obj1] = new_group
            self._object_map[obj2] = new_group
        elif group1 != group2:
            absorbed = self._group_list[group2]
            for obj in absorbed:
                self._object_map[obj] = group1
            self._group_list[group1].extend(absorbed)
            self._group_list[group2] = []

    def add_pairs(self, pairs: Iterable[ObjectPair]) -> int:
        """Consumes a pair stream; returns the number of pairs read."""
        count = 0
        for obj1, obj2 in pairs:
            self.add_pair(obj1, obj2)
            count += 1
        logger.debug(f"{count} pairs consumed, {len(self._object_map)} objects seen.")
        return count

    def group_of(self, obj: str) -> Optional[int]:
        """Working group number of an object, or None if it has not been seen."""
        return self._object_map.get(obj)

    def clusters(self) -> List[Cluster]:
        """Non-empty groups, largest first, numbered from 1."""
        live = [members for members in self._group_list if members]
        live.sort(key=len, reverse=True)
        logger.info(f"{len(live)} clusters formed from {len(self._object_map)} objects.")
        return [Cluster(i, list(members)) for i, members in enumerate(live, start=1)]

    def __len__(self) -> int:
        return sum(1 for members in self._group_list if members)

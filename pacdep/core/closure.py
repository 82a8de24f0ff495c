"""
Dependency closure data model

A Closure holds every package reached from the requested roots during
one run, the classification of each of them, and per-classification
size totals and member lists. It is built by the analysis mixins and
handed to the CLI for rendering; nothing in it outlives the run.
"""

import bisect
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterator, List, Optional

from .database import Package, InstallReason


class Classification(IntEnum):
    """What removing the roots would mean for a dependency.

    Each *_EXPLICIT value is its base value + 1, and odd.
    """
    UNKNOWN = 0
    EXCLUSIVE = 2
    EXCLUSIVE_EXPLICIT = 3
    SHARED = 4
    SHARED_EXPLICIT = 5
    OPTIONAL = 6
    OPTIONAL_EXPLICIT = 7

    @property
    def is_explicit(self) -> bool:
        return self != Classification.UNKNOWN and self % 2 == 1

    @property
    def base(self) -> 'Classification':
        if self.is_explicit:
            return Classification(self - 1)
        return self

    @property
    def is_shared(self) -> bool:
        return self in (Classification.SHARED, Classification.SHARED_EXPLICIT)

    def promoted(self) -> 'Classification':
        """The explicit variant of a base classification."""
        return Classification(self.base + 1)


# Report titles, as printed by the CLI
TITLES = {
    Classification.UNKNOWN: "Total dependencies:",
    Classification.EXCLUSIVE: "Exclusive dependencies:",
    Classification.EXCLUSIVE_EXPLICIT: "Exclusive explicit dependencies:",
    Classification.SHARED: "Shared dependencies:",
    Classification.SHARED_EXPLICIT: "Shared explicit dependencies:",
    Classification.OPTIONAL: "Optional dependencies:",
    Classification.OPTIONAL_EXPLICIT: "Optional explicit dependencies:",
}

CLASSIFIED = [c for c in Classification if c != Classification.UNKNOWN]


@dataclass(eq=False)
class PackageNode:
    """One distinct package of a closure."""
    package: Package
    requested_name: Optional[str] = None
    is_root: bool = False
    dependencies: List['PackageNode'] = field(default_factory=list)
    classification: Classification = Classification.UNKNOWN

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def repo(self) -> Optional[str]:
        return self.package.repo

    @property
    def is_local(self) -> bool:
        return self.package.repo is None

    @property
    def reason(self) -> Optional[InstallReason]:
        return self.package.reason

    @property
    def size(self) -> int:
        return self.package.isize

    @property
    def is_provided(self) -> bool:
        """The root was requested through a name it provides."""
        return self.requested_name is not None and self.requested_name != self.name

    @property
    def display_name(self) -> str:
        if self.repo:
            return f"{self.repo}/{self.name}"
        return self.name

    def add_dependency(self, node: 'PackageNode') -> bool:
        """Link a child, keeping the list free of duplicates."""
        if node is self or any(d is node for d in self.dependencies):
            return False
        self.dependencies.append(node)
        return True

    def __repr__(self):
        return f"PackageNode({self.name!r}, {self.classification.name})"


def _name_key(node: PackageNode):
    # local members first, then repository ones
    return (node.repo is not None, node.name)


def _size_key(node: PackageNode):
    return (node.repo is not None, -node.size, node.name)


@dataclass
class AggregationRecord:
    """Running totals and members of one classification."""
    classification: Classification
    total_size: int = 0
    local_size: int = 0
    members: List[PackageNode] = field(default_factory=list)
    width: int = 0
    # sort keys of members, kept in step with it
    _keys: List[tuple] = field(default_factory=list, init=False, repr=False)

    @property
    def title(self) -> str:
        return TITLES[self.classification]

    @property
    def sync_size(self) -> int:
        return self.total_size - self.local_size

    @property
    def is_mixed(self) -> bool:
        """Has both local and repository members (by size)."""
        return self.local_size > 0 and self.total_size > self.local_size

    def add(self, node: PackageNode, listed: bool, sort_by_size: bool = False):
        self.total_size += node.size
        if node.is_local:
            self.local_size += node.size
        if not listed:
            return
        key = (_size_key if sort_by_size else _name_key)(node)
        position = bisect.bisect_right(self._keys, key)
        self._keys.insert(position, key)
        self.members.insert(position, node)
        # +1 for the space after the name
        self.width = max(self.width, len(node.display_name) + 1)

    def remove(self, node: PackageNode):
        self.total_size -= node.size
        if node.is_local:
            self.local_size -= node.size
        for i, member in enumerate(self.members):
            if member is node:
                del self.members[i]
                del self._keys[i]
                self.width = max((len(m.display_name) + 1 for m in self.members),
                                 default=0)
                break


@dataclass
class Closure:
    """Full state of one analysis run."""
    nodes: Dict[str, PackageNode] = field(default_factory=dict)
    roots: List[PackageNode] = field(default_factory=list)
    records: Dict[Classification, AggregationRecord] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    reverse: bool = False

    def __post_init__(self):
        for classification in CLASSIFIED:
            self.records.setdefault(classification, AggregationRecord(classification))

    def __contains__(self, name: str) -> bool:
        return name in self.nodes

    def __iter__(self) -> Iterator[PackageNode]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, name: str) -> Optional[PackageNode]:
        return self.nodes.get(name)

    def add_node(self, package: Package) -> PackageNode:
        """Create the node of a package not yet in the closure."""
        if package.name in self.nodes:
            raise ValueError(f"{package.name} is already in the closure")
        node = PackageNode(package)
        self.nodes[package.name] = node
        return node

    def add_root(self, package: Package, requested_name: str) -> PackageNode:
        """Add a root, seeded EXCLUSIVE.

        A package already in the closure (another root reached it first)
        is turned into a root in place.
        """
        node = self.nodes.get(package.name)
        if node is None:
            node = self.add_node(package)
        elif node.classification != Classification.UNKNOWN and not node.is_root:
            self.records[node.classification].remove(node)
        node.is_root = True
        node.requested_name = requested_name
        node.classification = Classification.EXCLUSIVE
        if all(r is not node for r in self.roots):
            self.roots.append(node)
        return node

    def record(self, classification: Classification) -> AggregationRecord:
        return self.records[classification]

    def members(self, classification: Classification) -> List[PackageNode]:
        return [n for n in self.nodes.values()
                if not n.is_root and n.classification == classification]

    # =========================================================================
    # Sizes
    # =========================================================================

    @property
    def root_size(self) -> int:
        return sum(r.size for r in self.roots)

    def size_of(self, *classifications: Classification) -> int:
        return sum(self.records[c].total_size for c in classifications)

    @property
    def exclusive_size(self) -> int:
        return self.size_of(Classification.EXCLUSIVE, Classification.EXCLUSIVE_EXPLICIT)

    @property
    def shared_size(self) -> int:
        return self.size_of(Classification.SHARED, Classification.SHARED_EXPLICIT)

    @property
    def optional_size(self) -> int:
        return self.size_of(Classification.OPTIONAL, Classification.OPTIONAL_EXPLICIT)

    @property
    def dependencies_size(self) -> int:
        return self.exclusive_size + self.shared_size + self.optional_size

    @property
    def removable_size(self) -> int:
        """Roots plus the exclusive and optional dependencies of their kind.

        For installed roots only installed dependencies count (what
        removing would free); for repository roots only repository ones
        (what installing would add).
        """
        removable = (Classification.EXCLUSIVE, Classification.EXCLUSIVE_EXPLICIT,
                     Classification.OPTIONAL, Classification.OPTIONAL_EXPLICIT)
        local = sum(self.records[c].local_size for c in removable)
        if self.roots and all(not r.is_local for r in self.roots):
            return self.root_size + self.size_of(*removable) - local
        return self.root_size + local

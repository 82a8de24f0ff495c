"""
Dependency analyzer

Computes, for one or more requested packages, the closure of what they
depend on (or of what requires them) and classifies each member:

    EXCLUSIVE   only needed by the requested packages
    SHARED      also needed by something else installed
    OPTIONAL    an optional dependency of a requested package

Each classification has an *_EXPLICIT variant used in explicit mode for
packages installed on purpose, which are otherwise left out of the
closure.
"""

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, List, Tuple, Union

from .analysis import GraphMixin, ClassifierMixin, OptionalMixin, ReverseMixin
from .closure import CLASSIFIED, Classification, Closure
from .database import PackageDatabase

logger = logging.getLogger(__name__)

MAX_OPTIONAL_LEVEL = 3
MAX_REVERSE_LEVEL = 3

# Python frames used per node of a dependency chain during classification
FRAMES_PER_NODE = 4


class PackageNotFound(LookupError):
    """Raised when nothing satisfies a requested package name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Package not found: {name}")


class NothingToProcess(ValueError):
    """Raised when no requested package could be resolved."""

    def __init__(self, message: str = "Nothing to process", not_found: List[str] = None):
        self.not_found = list(not_found or [])
        super().__init__(message)


@dataclass(frozen=True)
class AnalysisOptions:
    """What to compute and what to keep for listing.

    Attributes:
        explicit: Follow explicitly installed dependencies and use the
                  *_EXPLICIT classifications for them
        show_optional: Optional dependencies level, 0 (none) to 3
        reverse: Reverse analysis level, 0 (forward) to 3
        from_sync: Resolve requested names in the repositories only
        sort_by_size: Sort listed members by size instead of name
        listed: Classifications whose members are listed, not only sized
    """
    explicit: bool = False
    show_optional: int = 0
    reverse: int = 0
    from_sync: bool = False
    sort_by_size: bool = False
    listed: FrozenSet[Classification] = frozenset()

    def __post_init__(self):
        if not 0 <= self.show_optional <= MAX_OPTIONAL_LEVEL:
            raise ValueError(f"Invalid optional level: {self.show_optional}")
        if not 0 <= self.reverse <= MAX_REVERSE_LEVEL:
            raise ValueError(f"Invalid reverse level: {self.reverse}")
        invalid = [c for c in self.listed if c not in CLASSIFIED]
        if invalid:
            raise ValueError(f"Cannot list classification {invalid[0]!r}")

    @property
    def reverse_depth(self) -> int:
        """Extra requirer levels walked in reverse mode."""
        return max(self.reverse - 1, 0)


@contextmanager
def recursion_headroom(nodes: int):
    """Make room on the stack for classifying a closure of up to nodes packages."""
    previous = sys.getrecursionlimit()
    needed = previous + nodes * FRAMES_PER_NODE
    if needed > previous:
        logger.debug(f"raising recursion limit to {needed}")
        sys.setrecursionlimit(needed)
    try:
        yield
    finally:
        sys.setrecursionlimit(previous)


class Analyzer(GraphMixin, OptionalMixin, ClassifierMixin, ReverseMixin):
    """Classifies the dependencies (or requirers) of requested packages.

    Analysis logic lives in the mixins under core/analysis/; this class
    wires them to a database and a set of options.
    """

    def __init__(self, db: PackageDatabase, options: AnalysisOptions = None):
        self.db = db
        self.options = options or AnalysisOptions()

    def analyze(self, names: Iterable[str]) -> Closure:
        """Compute the classified dependency closure of names, as one set.

        Raises:
            NothingToProcess: no name given, or none found
        """
        names = list(names)
        if not names:
            raise NothingToProcess("Missing package name(s)")

        with recursion_headroom(self.db.count_packages()):
            closure = self.build_closure(names)
            if not closure.roots:
                raise NothingToProcess(not_found=closure.not_found)
            if self.options.show_optional:
                self.add_optional_dependencies(closure)
            self.settle(closure)
            if self.options.show_optional:
                self.classify_optional(closure)

        logger.debug(f"closure of {len(closure)} package(s), "
                     f"{len(closure.unresolved)} unresolved dependency(ies)")
        return closure

    def analyze_each(self, names: Iterable[str]
                     ) -> Iterator[Tuple[str, Union[Closure, PackageNotFound]]]:
        """Analyze every name on its own.

        Yields (name, closure), or (name, PackageNotFound) for names that
        could not be resolved; one missing package does not stop the run.
        """
        for name in names:
            try:
                if self.options.reverse:
                    closure = self.required_by([name])
                else:
                    closure = self.analyze([name])
            except NothingToProcess:
                yield name, PackageNotFound(name)
                continue
            yield name, closure

    def required_by(self, names: Iterable[str]) -> Closure:
        """Compute the requirers closure of names, as one set.

        Raises:
            NothingToProcess: no name given, or none found
        """
        names = list(names)
        if not names:
            raise NothingToProcess("Missing package name(s)")

        closure = self.build_reverse_closure(names, self.options.reverse_depth)
        if not closure.roots:
            raise NothingToProcess(not_found=closure.not_found)
        return closure

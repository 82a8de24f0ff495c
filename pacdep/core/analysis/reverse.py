"""Reverse analysis: who requires the roots."""

import logging
from typing import Iterable, List

from ..closure import Classification, Closure, PackageNode
from ..database import SearchSet

logger = logging.getLogger(__name__)


class ReverseMixin:
    """Mixin building the requirers closure.

    Requirers are not classified by propagation: hard requirers are
    EXCLUSIVE (EXCLUSIVE_EXPLICIT in explicit mode, when installed on
    purpose), optional requirers OPTIONAL.

    Requires:
        - self.db: PackageDatabase instance
        - self.options: AnalysisOptions instance
        - self.add_roots(): from GraphMixin
        - self.explicit(), self.assign(): from ClassifierMixin
    """

    def build_reverse_closure(self, names: Iterable[str], depth: int = 0) -> Closure:
        """Build the closure of packages requiring the named ones.

        Args:
            names: Requested package names or capabilities
            depth: 0 for direct requirers only, each extra level also
                   lists the requirers of the previous level. From 1 on,
                   optional requirers are looked up too.
        """
        closure = Closure(reverse=True)
        self.add_roots(closure, names)

        frontier = list(closure.roots)
        for level in range(depth + 1):
            logger.debug(f"requirers, level {level}: {len(frontier)} package(s)")
            next_frontier = []
            for node in frontier:
                next_frontier.extend(self._add_requirers(closure, node))
                if depth >= 1:
                    self._add_optional_requirers(closure, node)
            frontier = next_frontier
        return closure

    def _add_requirers(self, closure: Closure, node: PackageNode) -> List[PackageNode]:
        search = SearchSet.LOCAL if node.is_local else SearchSet.SYNC
        added = []
        for name in self.db.required_by(node.package):
            existing = closure.get(name)
            if existing is not None:
                node.add_dependency(existing)
                continue
            pkg = self.db.find_package(name, search)
            if pkg is None:
                continue
            child = closure.add_node(pkg)
            node.add_dependency(child)
            self.assign(closure, child, self.explicit(child, Classification.EXCLUSIVE))
            logger.debug(f"{node.name} required by {name}")
            added.append(child)
        return added

    def _add_optional_requirers(self, closure: Closure, node: PackageNode):
        # optdepends only name packages: exact name match
        search = SearchSet.LOCAL if node.is_local else SearchSet.BOTH
        for pkg in self.db.all_packages(search):
            if pkg.name == node.name or pkg.name in closure:
                continue
            if not any(name == node.name for name, _ in pkg.optdepends):
                continue
            child = closure.add_node(pkg)
            self.assign(closure, child, self.explicit(child, Classification.OPTIONAL))
            logger.debug(f"{node.name} optional for {pkg.name}")

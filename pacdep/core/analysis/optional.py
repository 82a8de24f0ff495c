"""Optional dependencies of the roots.

The sweep pulls a root's optdepends into the closure, filtered by the
requested level:

    1  installed only, not explicitly installed, not required by an
       installed package outside the closure
    2  installed only, not explicitly installed
    3  anything found, in the repositories too

Once the closure is settled, the overlay marks the roots' optional
dependencies OPTIONAL over whatever they were classified as.
"""

import logging
from typing import Iterator

from ..closure import Classification, Closure, PackageNode
from ..database import Package, SearchSet

logger = logging.getLogger(__name__)


class OptionalMixin:
    """Mixin handling optional dependencies.

    Requires:
        - self.db: PackageDatabase instance
        - self.options: AnalysisOptions instance
        - self.add_to_closure(): from GraphMixin
        - self.explicit(), self.set_classification(): from ClassifierMixin
    """

    def _required_outside(self, closure: Closure, pkg: Package) -> bool:
        for name in self.db.required_by(pkg):
            if name not in closure and self.db.is_installed(name):
                logger.debug(f"{pkg.name} required by {name}")
                return True
        return False

    def optional_candidates(self, closure: Closure, root: PackageNode) -> Iterator[Package]:
        """Optional dependencies of root that pass the level filters."""
        level = self.options.show_optional
        for name, _description in self.db.optional_dependencies_of(root.package):
            pkg = self.db.find_package(name, SearchSet.LOCAL)
            if pkg is None:
                if level < 3:
                    logger.debug(f"ignoring optdep {name}: not installed")
                    continue
                pkg = self.db.find_package(name, SearchSet.SYNC)
            if pkg is None:
                logger.debug(f"ignoring optdep {name}: not found")
                continue

            if level < 3 and not self.options.explicit and pkg.is_explicit:
                logger.debug(f"ignoring optdep {pkg.name}: explicitly installed")
                continue
            if level < 2 and self._required_outside(closure, pkg):
                logger.debug(f"ignoring optdep {pkg.name}: required outside")
                continue
            yield pkg

    def add_optional_dependencies(self, closure: Closure):
        """Add the roots' selected optional dependencies to the closure."""
        logger.debug(f"adding optional dependencies (level {self.options.show_optional})")
        for root in list(closure.roots):
            for pkg in self.optional_candidates(closure, root):
                if pkg.name in closure:
                    continue
                self.add_to_closure(closure, pkg)

    def _optional_node(self, closure: Closure, name: str):
        node = closure.get(name)
        if node is None:
            # capability: look for the package providing it
            pkg = self.db.find_package(name, SearchSet.LOCAL)
            if pkg is None:
                pkg = self.db.find_package(name, SearchSet.SYNC)
            if pkg is not None:
                node = closure.get(pkg.name)
        return node

    def classify_optional(self, closure: Closure):
        """Mark the roots' optional dependencies found in the closure OPTIONAL."""
        for root in closure.roots:
            for name, _description in self.db.optional_dependencies_of(root.package):
                node = self._optional_node(closure, name)
                if node is None or node.is_root:
                    continue
                state = self.explicit(node, Classification.OPTIONAL)
                self.set_classification(closure, node, state)

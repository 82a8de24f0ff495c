"""Closure construction: roots and their dependency edges."""

import logging
from typing import Iterable, List, Optional

from ..closure import Closure, PackageNode
from ..database import Package, SearchSet

logger = logging.getLogger(__name__)


class GraphMixin:
    """Mixin building the forward (depends) closure.

    Requires:
        - self.db: PackageDatabase instance
        - self.options: AnalysisOptions instance
    """

    def resolve_root(self, name: str) -> Package:
        """Find the package a requested name refers to.

        Installed packages are searched first (unless options.from_sync),
        then the repositories. The name may be a capability, in which case
        the satisfier has a different name.

        Raises:
            PackageNotFound: nothing satisfies name
        """
        from ..analyzer import PackageNotFound

        pkg = None
        if not self.options.from_sync:
            pkg = self.db.find_package(name, SearchSet.LOCAL)
        if pkg is None:
            pkg = self.db.find_package(name, SearchSet.SYNC)
        if pkg is None:
            raise PackageNotFound(name)
        if pkg.name != name:
            logger.debug(f"{name} is provided by {pkg.name}")
        return pkg

    def resolve_dependency(self, spec: str) -> Optional[Package]:
        """Find the satisfier of a dependency spec, local first."""
        pkg = self.db.find_package(spec, SearchSet.LOCAL)
        if pkg is None:
            pkg = self.db.find_package(spec, SearchSet.SYNC)
        return pkg

    def add_roots(self, closure: Closure, names: Iterable[str]) -> List[PackageNode]:
        """Resolve and seed the roots; unresolvable names are skipped."""
        from ..analyzer import PackageNotFound

        roots = []
        for name in names:
            try:
                pkg = self.resolve_root(name)
            except PackageNotFound as e:
                logger.debug(str(e))
                closure.not_found.append(name)
                continue
            roots.append(closure.add_root(pkg, name))
        return roots

    def build_closure(self, names: Iterable[str]) -> Closure:
        """Build the closure of everything the named packages depend on.

        Args:
            names: Requested package names or capabilities

        Returns:
            Closure with roots seeded EXCLUSIVE and every other node UNKNOWN
        """
        closure = Closure()
        self.add_roots(closure, names)

        logger.debug("create list of all dependencies")
        for root in list(closure.roots):
            self._expand(closure, root)
        return closure

    def add_to_closure(self, closure: Closure, pkg: Package) -> PackageNode:
        """Create the node of pkg and, recursively, of its dependencies.

        The node is inserted before its dependencies are visited, so that
        cycles end on the existing node.
        """
        node = closure.add_node(pkg)
        logger.debug(f"adding {pkg.name} to deps")
        self._expand(closure, node)
        return node

    def _expand(self, closure: Closure, node: PackageNode):
        for spec in self.db.dependencies_of(node.package):
            logger.debug(f"[{node.name}] look for satisfier of {spec}")
            dep = self.resolve_dependency(spec)
            if dep is None:
                logger.warning(f"no package found for dependency {spec}")
                if spec not in closure.unresolved:
                    closure.unresolved.append(spec)
                continue

            if not self.options.explicit and dep.is_explicit:
                logger.debug(f"ignoring dependency {dep.name}, explicitly installed")
                continue

            child = closure.get(dep.name)
            if child is None:
                child = self.add_to_closure(closure, dep)
            else:
                logger.debug(f"{dep.name} already in deps")
            node.add_dependency(child)

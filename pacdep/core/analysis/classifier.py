"""Exclusive/shared classification of closure nodes.

A dependency is SHARED as soon as something installed outside the
closure requires it, or something SHARED inside the closure does.
Otherwise it is EXCLUSIVE: removing the roots would leave it unused.

States are memoized on the nodes: determine_state() only computes a
node still UNKNOWN, and a guard set of node names (passed by value down
the recursion) keeps requirer cycles from looping.
"""

import logging
from typing import FrozenSet

from ..closure import Classification, Closure, PackageNode

logger = logging.getLogger(__name__)

Guard = FrozenSet[str]

NO_GUARD: Guard = frozenset()


class ClassifierMixin:
    """Mixin providing the classification state machine.

    Requires:
        - self.db: PackageDatabase instance
        - self.options: AnalysisOptions instance
    """

    def explicit(self, node: PackageNode, state: Classification) -> Classification:
        """Promote state to its *_EXPLICIT variant when it applies.

        Only in explicit mode, and only for packages installed locally on
        purpose.
        """
        if not self.options.explicit or state == Classification.UNKNOWN:
            return state
        if node.package.is_explicit:
            return state.promoted()
        return state

    def determine_state(self, closure: Closure, node: PackageNode,
                        guard: Guard = NO_GUARD) -> Classification:
        """Compute the classification of node from its requirers.

        Requirers still UNKNOWN are settled first, unless they are in
        guard (we are already computing them further up the stack).
        """
        if node.classification != Classification.UNKNOWN:
            return node.classification

        logger.debug(f"compute dep state for {node.name}")
        for name in self.db.required_by(node.package):
            requirer = closure.get(name)

            if requirer is None:
                # required by a pkg outside our tree -- if it's one not
                # installed locally, we ignore it, else it's shared
                if not self.db.is_installed(name):
                    continue
                state = self.explicit(node, Classification.SHARED)
                logger.debug(f"{node.name}={state.name}: required by outsider: {name}")
                return state

            if requirer.classification.is_shared:
                state = self.explicit(node, Classification.SHARED)
                logger.debug(
                    f"{node.name}={state.name}: required by shared dep "
                    f"({name}={requirer.classification.name})"
                )
                return state

            if requirer.classification != Classification.UNKNOWN:
                continue

            if name in guard:
                logger.debug(f"{node.name} required by {name}, already found in refs")
                continue

            logger.debug(f"{node.name} required by {name}, determining state")
            inner = guard | {name}
            self.set_classification(
                closure, requirer, self.determine_state(closure, requirer, inner), inner
            )
            # the cascade may have settled requirer (and node) otherwise
            requirer_state = requirer.classification
            if (requirer_state.is_shared
                    or (self.options.explicit
                        and requirer_state == Classification.EXCLUSIVE_EXPLICIT)):
                state = self.explicit(node, Classification.SHARED)
                logger.debug(f"{node.name}={state.name}: {name} not exclusive "
                             f"({requirer_state.name})")
                return state
            logger.debug("moving on")

        if node.classification != Classification.UNKNOWN:
            logger.debug(f"{node.name}={node.classification.name}: settled meanwhile")
            return node.classification

        state = self.explicit(node, Classification.EXCLUSIVE)
        logger.debug(f"{node.name}={state.name}")
        return state

    def set_classification(self, closure: Closure, node: PackageNode,
                           state: Classification, guard: Guard = NO_GUARD):
        """Assign state to node and cascade to its dependencies.

        Roots keep the classification they were seeded with, and a shared
        node only ever moves to optional.
        """
        if node.classification == state:
            return
        if node.is_root and node.classification != Classification.UNKNOWN:
            return
        if (node.classification.is_shared and not state.is_shared
                and state.base != Classification.OPTIONAL):
            logger.debug(f"{node.name} stays {node.classification.name}, "
                         f"ignoring {state.name}")
            return

        self.assign(closure, node, state)
        self._propagate(closure, node, guard)

    def assign(self, closure: Closure, node: PackageNode, state: Classification):
        """Move node to state, keeping the aggregation records consistent.

        Sizes are always accounted; members are only listed for the
        classifications in options.listed. Roots are not accounted.
        """
        logger.debug(f"set {node.name} to dep {state.name}")
        if not node.is_root:
            if node.classification != Classification.UNKNOWN:
                closure.record(node.classification).remove(node)
            if state != Classification.UNKNOWN:
                closure.record(state).add(
                    node,
                    listed=state in self.options.listed,
                    sort_by_size=self.options.sort_by_size,
                )
        node.classification = state

    def _propagate(self, closure: Closure, node: PackageNode, guard: Guard):
        for child in node.dependencies:
            logger.debug(f"{node.name} depends on {child.name}")
            if node.classification.is_shared:
                # whatever a shared package needs stays needed
                self.set_classification(
                    closure, child, self.explicit(child, Classification.SHARED), guard
                )
            else:
                inner = guard | {node.name}
                state = self.determine_state(closure, child, inner)
                self.set_classification(closure, child, state, inner)

    def settle_node(self, closure: Closure, node: PackageNode):
        """Make sure node has a final classification."""
        if node.classification == Classification.UNKNOWN:
            state = self.determine_state(closure, node)
            self.set_classification(closure, node, state)

    def settle(self, closure: Closure):
        """Classify every node of the closure.

        Classification flows down from the roots; nodes no root edge
        reaches (the optional sweep adds some) are settled afterwards.
        """
        logger.debug("determine dependencies type (exclusive/shared)")
        for root in closure.roots:
            self._propagate(closure, root, NO_GUARD)
        for node in list(closure):
            self.settle_node(closure, node)

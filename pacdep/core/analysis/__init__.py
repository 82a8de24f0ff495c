"""
Dependency analysis mixins for pacdep.

This package splits the Analyzer into focused modules:
- graph: closure construction from the requested roots
- classifier: exclusive/shared classification and its propagation
- optional: optional dependencies sweep and overlay
- reverse: requirers of the roots
"""

from .graph import GraphMixin
from .classifier import ClassifierMixin
from .optional import OptionalMixin
from .reverse import ReverseMixin

__all__ = [
    'GraphMixin',
    'ClassifierMixin',
    'OptionalMixin',
    'ReverseMixin',
]

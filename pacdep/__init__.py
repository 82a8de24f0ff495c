"""
pacdep - Package dependencies helper for pacman-based systems

Reports what removing a set of packages would free:
- Exclusive dependencies (only needed by the requested packages)
- Shared dependencies (still needed by something else installed)
- Optional dependencies, with a configurable inclusion policy
- Reverse mode: who requires a package
"""

__version__ = "1.0.0"
__author__ = "pacdep contributors"

"""
SQLite index of pacman package metadata

The local database and every configured sync database are loaded once
into an in-memory SQLite database; all lookups pacdep needs (satisfiers,
required-by, optional dependents) are then plain queries.
"""

import logging
import sqlite3
import tarfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .desc import parse_dependency, parse_optdepend, iter_local_db, iter_sync_db

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS packages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    version TEXT,
    description TEXT,
    repo TEXT,                 -- NULL for the local (installed) database
    position INTEGER NOT NULL, -- repository order from pacman.conf, 0 = local
    reason TEXT,               -- 'explicit', 'dependency', NULL for sync
    isize INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS depends (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pkg_id INTEGER NOT NULL,
    spec TEXT NOT NULL,
    capability TEXT NOT NULL,
    operator TEXT,
    version TEXT,
    FOREIGN KEY (pkg_id) REFERENCES packages(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS optdepends (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pkg_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    FOREIGN KEY (pkg_id) REFERENCES packages(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS provides (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pkg_id INTEGER NOT NULL,
    spec TEXT NOT NULL,
    capability TEXT NOT NULL,
    FOREIGN KEY (pkg_id) REFERENCES packages(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_pkg_name ON packages(name);
CREATE INDEX IF NOT EXISTS idx_pkg_repo ON packages(repo);
CREATE INDEX IF NOT EXISTS idx_depends_cap ON depends(capability);
CREATE INDEX IF NOT EXISTS idx_depends_pkg ON depends(pkg_id);
CREATE INDEX IF NOT EXISTS idx_optdepends_name ON optdepends(name);
CREATE INDEX IF NOT EXISTS idx_optdepends_pkg ON optdepends(pkg_id);
CREATE INDEX IF NOT EXISTS idx_provides_cap ON provides(capability);
CREATE INDEX IF NOT EXISTS idx_provides_pkg ON provides(pkg_id);
"""


class DatabaseError(Exception):
    """Raised when the package databases cannot be loaded."""


class SearchSet(Enum):
    """Which partition of the metadata a lookup covers."""
    LOCAL = "local"  # installed packages
    SYNC = "sync"    # repository packages
    BOTH = "both"    # local first, then sync


class InstallReason(Enum):
    """Why an installed package is on the system."""
    EXPLICIT = "explicit"      # User requested it
    DEPENDENCY = "dependency"  # Pulled in by another package


@dataclass(frozen=True)
class Package:
    """A concrete package from the local or a sync database."""
    id: int
    name: str
    version: str
    repo: Optional[str] = None            # None = local origin
    reason: Optional[InstallReason] = None  # only defined for local packages
    isize: int = 0
    description: str = ''
    depends: Tuple[str, ...] = field(default=(), compare=False)
    optdepends: Tuple[Tuple[str, str], ...] = field(default=(), compare=False)
    provides: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def is_local(self) -> bool:
        return self.repo is None

    @property
    def is_explicit(self) -> bool:
        """Locally installed on purpose by the user."""
        return self.repo is None and self.reason == InstallReason.EXPLICIT


def _partition_clause(search: SearchSet, alias: str = 'p') -> str:
    if search == SearchSet.LOCAL:
        return f"{alias}.repo IS NULL"
    if search == SearchSet.SYNC:
        return f"{alias}.repo IS NOT NULL"
    return "1"


class PackageDatabase:
    """In-memory SQLite index over the local and sync databases."""

    def __init__(self):
        """Open an empty in-memory index; it only lives for one run."""
        self.conn = sqlite3.connect(':memory:')
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.executescript(SCHEMA)
        self._positions: Dict[str, int] = {}

    def close(self):
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # =========================================================================
    # Package import
    # =========================================================================

    def import_packages(self, packages: Iterable[Dict[str, Any]],
                        repo: Optional[str] = None) -> int:
        """Import packages parsed from a local or sync database.

        Uses bulk inserts in a single transaction.

        Args:
            packages: Iterable of package dictionaries with keys name,
                      version, description, isize, reason, depends,
                      optdepends [(name, description)], provides
            repo: Sync repository name, None for the local database

        Returns:
            Number of packages imported
        """
        if repo is None:
            position = 0
        else:
            position = self._positions.setdefault(repo, len(self._positions) + 1)

        all_packages = list(packages)

        try:
            depends_rows = []
            optdepends_rows = []
            provides_rows = []

            for pkg in all_packages:
                cursor = self.conn.execute("""
                    INSERT INTO packages
                    (name, version, description, repo, position, reason, isize)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    pkg['name'],
                    pkg.get('version', ''),
                    pkg.get('description', ''),
                    repo,
                    position,
                    pkg.get('reason') if repo is None else None,
                    pkg.get('isize', 0),
                ))
                pkg_id = cursor.lastrowid

                for spec in pkg.get('depends', []):
                    cap, op, ver = parse_dependency(spec)
                    depends_rows.append((pkg_id, spec, cap, op, ver))
                for name, description in pkg.get('optdepends', []):
                    optdepends_rows.append((pkg_id, name, description))
                for spec in pkg.get('provides', []):
                    cap, _, _ = parse_dependency(spec)
                    provides_rows.append((pkg_id, spec, cap))

            if depends_rows:
                self.conn.executemany("""
                    INSERT INTO depends (pkg_id, spec, capability, operator, version)
                    VALUES (?, ?, ?, ?, ?)
                """, depends_rows)
            if optdepends_rows:
                self.conn.executemany(
                    "INSERT INTO optdepends (pkg_id, name, description) VALUES (?, ?, ?)",
                    optdepends_rows
                )
            if provides_rows:
                self.conn.executemany(
                    "INSERT INTO provides (pkg_id, spec, capability) VALUES (?, ?, ?)",
                    provides_rows
                )

            self.conn.commit()
            return len(all_packages)

        except Exception:
            self.conn.rollback()
            raise

    def add_package(self, name: str, version: str = '1.0-1', repo: str = None,
                    reason: str = 'explicit', isize: int = 0,
                    depends: List[str] = None,
                    optdepends: List[str] = None,
                    provides: List[str] = None,
                    description: str = '') -> Package:
        """Add a single package, mostly for tests and tooling.

        Args:
            optdepends: Raw entries like "python: for the bindings"
        """
        self.import_packages([{
            'name': name,
            'version': version,
            'description': description,
            'isize': isize,
            'reason': reason,
            'depends': depends or [],
            'optdepends': [parse_optdepend(o) for o in (optdepends or [])],
            'provides': provides or [],
        }], repo=repo)
        return self.find_package(name, SearchSet.LOCAL if repo is None else SearchSet.SYNC)

    # =========================================================================
    # Loading from pacman
    # =========================================================================

    def load_local(self, local_dir: Path) -> int:
        """Load pacman's local database directory."""
        local_dir = Path(local_dir)
        if not local_dir.is_dir():
            raise DatabaseError(f"Local database not found: {local_dir}")
        count = self.import_packages(iter_local_db(local_dir))
        logger.debug(f"Loaded {count} installed packages from {local_dir}")
        return count

    def load_sync(self, repo: str, db_file: Path) -> int:
        """Load one sync database archive."""
        count = self.import_packages(iter_sync_db(Path(db_file)), repo=repo)
        logger.debug(f"Loaded {count} packages from {repo} ({db_file})")
        return count

    # =========================================================================
    # Package queries
    # =========================================================================

    def _row_to_package(self, row: sqlite3.Row,
                        depends: Dict[int, List[str]],
                        optdepends: Dict[int, List[Tuple[str, str]]],
                        provides: Dict[int, List[str]]) -> Package:
        pkg_id = row['id']
        reason = InstallReason(row['reason']) if row['reason'] else None
        return Package(
            id=pkg_id,
            name=row['name'],
            version=row['version'] or '',
            repo=row['repo'],
            reason=reason,
            isize=row['isize'] or 0,
            description=row['description'] or '',
            depends=tuple(depends.get(pkg_id, ())),
            optdepends=tuple(optdepends.get(pkg_id, ())),
            provides=tuple(provides.get(pkg_id, ())),
        )

    def _get_by_id(self, pkg_id: int) -> Package:
        row = self.conn.execute(
            "SELECT * FROM packages WHERE id = ?", (pkg_id,)
        ).fetchone()
        depends = {pkg_id: [r[0] for r in self.conn.execute(
            "SELECT spec FROM depends WHERE pkg_id = ? ORDER BY id", (pkg_id,))]}
        optdepends = {pkg_id: [(r[0], r[1]) for r in self.conn.execute(
            "SELECT name, description FROM optdepends WHERE pkg_id = ? ORDER BY id",
            (pkg_id,))]}
        provides = {pkg_id: [r[0] for r in self.conn.execute(
            "SELECT spec FROM provides WHERE pkg_id = ? ORDER BY id", (pkg_id,))]}
        return self._row_to_package(row, depends, optdepends, provides)

    def _find_in(self, name: str, search: SearchSet) -> Optional[Package]:
        where = _partition_clause(search)

        # An exact name match wins over any provider
        row = self.conn.execute(f"""
            SELECT p.id FROM packages p
            WHERE p.name = ? AND {where}
            ORDER BY p.position, p.id
            LIMIT 1
        """, (name,)).fetchone()
        if row:
            return self._get_by_id(row[0])

        row = self.conn.execute(f"""
            SELECT p.id FROM packages p
            JOIN provides pr ON pr.pkg_id = p.id
            WHERE pr.capability = ? AND {where}
            ORDER BY p.position, p.name
            LIMIT 1
        """, (name,)).fetchone()
        if row:
            return self._get_by_id(row[0])
        return None

    def find_package(self, spec: str,
                     search: SearchSet = SearchSet.BOTH) -> Optional[Package]:
        """Find a package satisfying a name, capability or dependency spec.

        Version constraints in spec are ignored: satisfaction is by name
        or provided capability.

        Args:
            spec: "firefox", "sh" or "glibc>=2.38"
            search: Partition(s) to search; BOTH searches local first

        Returns:
            The satisfier, or None
        """
        name, _, _ = parse_dependency(spec)
        if search == SearchSet.BOTH:
            return (self._find_in(name, SearchSet.LOCAL)
                    or self._find_in(name, SearchSet.SYNC))
        return self._find_in(name, search)

    def dependencies_of(self, pkg: Package) -> List[str]:
        """Dependency specs of a package, in declaration order."""
        return list(pkg.depends)

    def optional_dependencies_of(self, pkg: Package) -> List[Tuple[str, str]]:
        """Optional dependencies of a package as (name, description)."""
        return list(pkg.optdepends)

    def provides_of(self, pkg: Package) -> List[str]:
        return list(pkg.provides)

    def is_installed(self, name: str) -> bool:
        """Check if a package with exactly this name is installed."""
        row = self.conn.execute(
            "SELECT 1 FROM packages WHERE name = ? AND repo IS NULL LIMIT 1",
            (name,)
        ).fetchone()
        return row is not None

    def required_by(self, pkg: Package) -> List[str]:
        """Names of the packages requiring pkg.

        Installed packages are searched for a local package, repository
        packages for a sync package.
        """
        capabilities = [pkg.name]
        for spec in pkg.provides:
            cap, _, _ = parse_dependency(spec)
            if cap not in capabilities:
                capabilities.append(cap)

        search = SearchSet.LOCAL if pkg.is_local else SearchSet.SYNC
        placeholders = ','.join('?' * len(capabilities))
        cursor = self.conn.execute(f"""
            SELECT DISTINCT p.name FROM depends d
            JOIN packages p ON p.id = d.pkg_id
            WHERE d.capability IN ({placeholders})
              AND {_partition_clause(search)}
              AND p.name != ?
            ORDER BY p.name
        """, (*capabilities, pkg.name))
        return [row[0] for row in cursor]

    def all_packages(self, search: SearchSet = SearchSet.BOTH) -> Iterator[Package]:
        """Iterate over every package of a partition (local first)."""
        where = _partition_clause(search)

        depends: Dict[int, List[str]] = {}
        for row in self.conn.execute(f"""
            SELECT d.pkg_id, d.spec FROM depends d JOIN packages p ON p.id = d.pkg_id
            WHERE {where} ORDER BY d.id
        """):
            depends.setdefault(row[0], []).append(row[1])

        optdepends: Dict[int, List[Tuple[str, str]]] = {}
        for row in self.conn.execute(f"""
            SELECT o.pkg_id, o.name, o.description FROM optdepends o
            JOIN packages p ON p.id = o.pkg_id
            WHERE {where} ORDER BY o.id
        """):
            optdepends.setdefault(row[0], []).append((row[1], row[2]))

        provides: Dict[int, List[str]] = {}
        for row in self.conn.execute(f"""
            SELECT pr.pkg_id, pr.spec FROM provides pr JOIN packages p ON p.id = pr.pkg_id
            WHERE {where} ORDER BY pr.id
        """):
            provides.setdefault(row[0], []).append(row[1])

        rows = self.conn.execute(
            f"SELECT * FROM packages p WHERE {where} ORDER BY p.position, p.name"
        ).fetchall()
        for row in rows:
            yield self._row_to_package(row, depends, optdepends, provides)

    def count_packages(self, search: SearchSet = SearchSet.BOTH) -> int:
        row = self.conn.execute(
            f"SELECT COUNT(*) FROM packages p WHERE {_partition_clause(search)}"
        ).fetchone()
        return row[0]


def open_database(config) -> PackageDatabase:
    """Load the local database and every sync database of a PacmanConfig.

    Raises:
        DatabaseError: the local database cannot be loaded
    """
    db = PackageDatabase()
    try:
        db.load_local(config.local_db_dir)
    except DatabaseError:
        db.close()
        raise
    except OSError as e:
        db.close()
        raise DatabaseError(f"Failed to read local database: {e}")

    for repo in config.repositories:
        db_file = config.sync_db_file(repo)
        if not db_file.exists():
            logger.warning(f"Database file for '{repo}' does not exist ({db_file})")
            continue
        try:
            db.load_sync(repo, db_file)
        except (OSError, EOFError, tarfile.TarError) as e:
            logger.warning(f"Could not load database {repo}: {e}")

    return db


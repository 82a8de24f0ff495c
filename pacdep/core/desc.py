"""
pacman database parser for pacdep

Parses the per-package 'desc' files (and the legacy 'depends' files) that
pacman keeps in the local database directory and inside sync database
archives. Format: a %FIELD% header line, one value per line, a blank line
ends the field.

    %NAME%
    firefox

    %DEPENDS%
    gtk3
    nss>=3.90
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

from .compression import open_archive

logger = logging.getLogger(__name__)

# Files of a package entry that carry metadata we use
DESC_FILES = ('desc', 'depends')

# name, then an optional version constraint
DEP_REGEX = re.compile(r'^([^<>=]+?)(>=|<=|=|<|>)(.+)$')


def parse_dependency(dep: str) -> Tuple[str, str, str]:
    """Parse a dependency string with optional version constraint.

    Args:
        dep: String like "glibc>=2.38", "sh" or "libfoo.so=1-64"

    Returns:
        Tuple of (name, operator, version)
    """
    dep = dep.strip()
    match = DEP_REGEX.match(dep)
    if match:
        return match.group(1), match.group(2), match.group(3)
    return dep, '', ''


def parse_optdepend(entry: str) -> Tuple[str, str]:
    """Parse an optional dependency entry.

    Args:
        entry: String like "python: for the python bindings"

    Returns:
        Tuple of (name, description). The name never carries the
        version constraint or the description.
    """
    # Epochs contain ':' too ("foo>=1:2.0"), only ': ' separates the text
    spec, sep, description = entry.partition(': ')
    if not sep:
        spec = spec.rstrip(':')
    name, _, _ = parse_dependency(spec)
    return name, description.strip()


def parse_desc(content: str) -> Dict[str, List[str]]:
    """Parse the content of a desc file into {FIELD: [values]}."""
    fields: Dict[str, List[str]] = {}
    current = None

    for line in content.split('\n'):
        line = line.strip()
        if not line:
            current = None
            continue
        if len(line) > 2 and line.startswith('%') and line.endswith('%'):
            current = line[1:-1]
            fields.setdefault(current, [])
            continue
        if current is not None:
            fields[current].append(line)

    return fields


def _first(fields: Dict[str, List[str]], key: str, default: str = '') -> str:
    values = fields.get(key)
    return values[0] if values else default


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def package_from_fields(fields: Dict[str, List[str]], local: bool) -> Dict[str, Any]:
    """Build a package dictionary from parsed desc fields.

    Args:
        fields: Output of parse_desc(), desc and depends files merged
        local: True for the local (installed) database

    Returns:
        Package dictionary, see PackageDatabase.import_packages()
    """
    if local:
        # %SIZE% is the installed size in the local db, %ISIZE% in sync dbs
        isize = _to_int(_first(fields, 'SIZE', _first(fields, 'ISIZE', '0')))
        # %REASON% is absent for explicitly installed packages
        reason = 'dependency' if _first(fields, 'REASON', '0') == '1' else 'explicit'
    else:
        isize = _to_int(_first(fields, 'ISIZE', _first(fields, 'SIZE', '0')))
        reason = None

    return {
        'name': _first(fields, 'NAME'),
        'version': _first(fields, 'VERSION'),
        'description': _first(fields, 'DESC'),
        'isize': isize,
        'reason': reason,
        'depends': list(fields.get('DEPENDS', [])),
        'optdepends': [parse_optdepend(o) for o in fields.get('OPTDEPENDS', [])],
        'provides': list(fields.get('PROVIDES', [])),
    }


def iter_local_db(local_dir: Path) -> Iterator[Dict[str, Any]]:
    """Parse pacman's local database directory and yield packages.

    Args:
        local_dir: Path like /var/lib/pacman/local

    Yields:
        Package dictionaries with reason set
    """
    for entry in sorted(Path(local_dir).iterdir()):
        if not entry.is_dir():
            # ALPM_DB_VERSION and friends
            continue

        fields: Dict[str, List[str]] = {}
        for fname in DESC_FILES:
            path = entry / fname
            if not path.exists():
                continue
            try:
                fields.update(parse_desc(path.read_text(errors='replace')))
            except OSError as e:
                logger.warning(f"Cannot read {path}: {e}")

        if not _first(fields, 'NAME'):
            logger.debug(f"Skipping {entry}: no package name")
            continue

        yield package_from_fields(fields, local=True)


def iter_sync_db(db_file: Path) -> Iterator[Dict[str, Any]]:
    """Parse a sync database archive and yield packages.

    Args:
        db_file: Path like /var/lib/pacman/sync/core.db

    Yields:
        Package dictionaries, in archive order
    """
    entries: Dict[str, Dict[str, List[str]]] = {}

    with open_archive(db_file) as archive:
        for member in archive:
            if not member.isfile():
                continue
            dirname, _, fname = member.name.rpartition('/')
            if fname not in DESC_FILES:
                continue
            f = archive.extractfile(member)
            if f is None:
                continue
            content = f.read().decode('utf-8', errors='replace')
            entries.setdefault(dirname, {}).update(parse_desc(content))

    for dirname, fields in entries.items():
        if not _first(fields, 'NAME'):
            logger.debug(f"Skipping {db_file}:{dirname}: no package name")
            continue
        yield package_from_fields(fields, local=False)

"""
pacman configuration for pacdep

Reads pacman.conf the way pacman does, keeping only what pacdep needs:

    [options]
    RootDir = /
    DBPath  = /var/lib/pacman/

    [core]
    Include = /etc/pacman.d/mirrorlist

Every section other than [options] is a sync repository; its database is
<DBPath>/sync/<repo>.db. Include directives are expanded with glob and
may appear in any section.
"""

import glob
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

# pacman default values
PACMAN_CONFFILE = Path("/etc/pacman.conf")
PACMAN_ROOTDIR = "/"
PACMAN_DBPATH = "/var/lib/pacman/"

# Include nesting limit, as pacman
MAX_INCLUDE_DEPTH = 10

# Exit codes shared with the CLI
E_OK = 0
E_USAGE = 1
E_FILEREAD = 2
E_PARSING = 3
E_NOPKG = 4
E_DATABASE = 5


class ConfigError(Exception):
    """Raised when pacman.conf cannot be read or parsed."""

    def __init__(self, message: str, code: int = E_PARSING):
        self.code = code
        super().__init__(message)


@dataclass
class PacmanConfig:
    """Settings read from pacman.conf."""
    root_dir: Optional[str] = None
    db_path: Optional[str] = None
    repositories: List[str] = field(default_factory=list)

    def apply_defaults(self):
        """Fill options pacman.conf left undefined."""
        if self.root_dir is None:
            self.root_dir = PACMAN_ROOTDIR
        if self.db_path is None:
            self.db_path = PACMAN_DBPATH

    @property
    def local_db_dir(self) -> Path:
        return Path(self.db_path) / "local"

    def sync_db_file(self, repo: str) -> Path:
        return Path(self.db_path) / "sync" / f"{repo}.db"


def _parse_file(path: Path, section: Optional[str], depth: int,
                config: PacmanConfig) -> Optional[str]:
    """Parse one file, recursing into Include directives.

    Returns:
        The section active at the end of the file, so that an included
        file can open a section the including file keeps using.
    """
    logger.debug(f"config: attempting to read file {path}")
    try:
        with open(path) as f:
            lines = f.readlines()
    except OSError as e:
        raise ConfigError(f"Config file {path} could not be read: {e}", E_FILEREAD)

    for linenum, line in enumerate(lines, 1):
        line = line.split('#', 1)[0].strip()
        if not line:
            continue

        if line.startswith('[') and line.endswith(']'):
            if len(line) <= 2:
                raise ConfigError(f"{path}, line {linenum}: invalid section name")
            section = line[1:-1]
            logger.debug(f"config: new section '{section}'")
            if section != 'options' and section not in config.repositories:
                config.repositories.append(section)
            continue

        key, sep, value = line.partition('=')
        key = key.strip()
        value = value.strip() if sep else None

        if section is None:
            raise ConfigError(
                f"{path}, line {linenum}: all directives must belong to a section"
            )

        if key == 'Include':
            if depth + 1 >= MAX_INCLUDE_DEPTH:
                raise ConfigError(
                    f"Parsing exceeded max recursion depth of {MAX_INCLUDE_DEPTH}"
                )
            if not value:
                raise ConfigError(f"{path}, line {linenum}: directive {key} needs a value")
            matches = sorted(glob.glob(value))
            if not matches:
                logger.debug(f"config file {path}, line {linenum}: no include found for {value}")
            for included in matches:
                logger.debug(f"config file {path}, line {linenum}: including {included}")
                section = _parse_file(Path(included), section, depth + 1, config)
            continue

        # only [options] holds anything we care about
        if section == 'options' and value is not None:
            if key == 'DBPath':
                config.db_path = value
                logger.debug(f"config: dbpath: {value}")
            elif key == 'RootDir':
                config.root_dir = value
                logger.debug(f"config: rootdir: {value}")

    logger.debug(f"config: finished parsing {path}")
    return section


def parse_pacman_conf(path: Union[str, Path] = PACMAN_CONFFILE) -> PacmanConfig:
    """Parse pacman.conf and its includes.

    Raises:
        ConfigError: unreadable file or syntax error
    """
    config = PacmanConfig()
    _parse_file(Path(path), None, 0, config)
    config.apply_defaults()
    return config

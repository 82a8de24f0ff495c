"""
Main CLI entry point for pacdep

    pacdep [OPTION..] PACKAGE..

For each package, shows its installed size and the size of its
dependencies: exclusive ones (removing the package would leave them
unused), shared ones (something else still needs them) and, with -p,
optional ones. With -r, shows what requires the package instead.
"""

import argparse
import logging
import sys

from .. import __version__
from ..core.analyzer import MAX_OPTIONAL_LEVEL, MAX_REVERSE_LEVEL
from ..core.config import (
    PACMAN_CONFFILE, E_DATABASE, E_NOPKG, E_USAGE,
    ConfigError, parse_pacman_conf,
)
from ..core.database import DatabaseError, open_database


class ArgumentParser(argparse.ArgumentParser):
    """argparse parser exiting with E_USAGE on bad arguments.

    argparse's own status (2) would read as E_FILEREAD.
    """

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(E_USAGE, f"{self.prog}: error: {message}\n")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""

    parser = ArgumentParser(
        prog='pacdep',
        description='Package dependencies listing and size information',
        epilog='Options -p and -r can be repeated (up to 3 times) for more.'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'pacdep {__version__}'
    )

    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Flood debug info to stderr'
    )

    parser.add_argument(
        '--config', '-c',
        metavar='FILE',
        default=str(PACMAN_CONFFILE),
        help=f'pacman.conf file to use (else {PACMAN_CONFFILE})'
    )

    parser.add_argument(
        '--dbpath', '-b',
        metavar='DIR',
        help='Database path to use instead of the DBPath of pacman.conf'
    )

    # What to list
    listing = parser.add_argument_group('listing')
    listing.add_argument(
        '--list-exclusive', '-e',
        action='store_true',
        help='List exclusive dependencies'
    )
    listing.add_argument(
        '--list-exclusive-explicit', '-E',
        action='store_true',
        help='List exclusive explicit dependencies'
    )
    listing.add_argument(
        '--list-shared', '-s',
        action='store_true',
        help='List shared dependencies'
    )
    listing.add_argument(
        '--list-shared-explicit', '-S',
        action='store_true',
        help='List shared explicit dependencies'
    )
    listing.add_argument(
        '--list-optional', '-o',
        action='store_true',
        help='List optional dependencies (implies -p)'
    )
    listing.add_argument(
        '--list-optional-explicit', '-O',
        action='store_true',
        help='List optional explicit dependencies (implies -p)'
    )

    # What to compute
    parser.add_argument(
        '--show-optional', '-p',
        action='count',
        default=0,
        help='Show optional dependencies: installed ones not required '
             'elsewhere (-p), installed ones (-pp), all (-ppp)'
    )
    parser.add_argument(
        '--explicit', '-x',
        action='store_true',
        help="Don't ignore explicitly installed dependencies"
    )
    parser.add_argument(
        '--reverse', '-r',
        action='count',
        default=0,
        help='Show what requires the package: directly (-r), two levels '
             'and optional requirers (-rr), three levels (-rrr)'
    )
    parser.add_argument(
        '--from-sync',
        action='store_true',
        help='Look for the requested packages in the repositories only'
    )
    parser.add_argument(
        '--together',
        action='store_true',
        help='Analyse all requested packages as one set'
    )
    parser.add_argument(
        '--sort-size',
        action='store_true',
        help='Sort listed dependencies by size'
    )

    # Output
    parser.add_argument(
        '--json',
        action='store_true',
        help='JSON output for scripting'
    )
    parser.add_argument(
        '--nocolor',
        action='store_true',
        help='Disable colored output'
    )

    parser.add_argument(
        'packages',
        nargs='*',
        metavar='PACKAGE',
        help='Package names (or names they provide)'
    )

    return parser


def validate_args(args) -> str:
    """Check option combinations argparse cannot express.

    Returns:
        Error message, or None when arguments are valid
    """
    if args.show_optional > MAX_OPTIONAL_LEVEL:
        return "Option --show-optional can only be used up to 3 times"
    if args.reverse > MAX_REVERSE_LEVEL:
        return "Option --reverse can only be used up to 3 times"
    return None


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    # Initialize color support
    from . import colors
    colors.init(nocolor=args.nocolor)

    error = validate_args(args)
    if error:
        print(colors.error(error), file=sys.stderr)
        return E_USAGE

    if not args.packages:
        print(colors.error("Missing package name(s)"), file=sys.stderr)
        return E_NOPKG

    try:
        config = parse_pacman_conf(args.config)
    except ConfigError as e:
        print(colors.error(f"Error: {e}"), file=sys.stderr)
        return e.code
    if args.dbpath:
        config.db_path = args.dbpath

    try:
        db = open_database(config)
    except DatabaseError as e:
        print(colors.error(f"Error: {e}"), file=sys.stderr)
        return E_DATABASE

    from .commands import cmd_report

    try:
        with db:
            return cmd_report(args, db)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())

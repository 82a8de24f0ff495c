"""Report commands: dependencies (forward) and requirers (reverse)."""

import sys
from typing import TYPE_CHECKING, Iterator, Tuple, Union

if TYPE_CHECKING:
    from ...core.database import PackageDatabase

from ...core.analyzer import (
    AnalysisOptions, Analyzer, NothingToProcess, PackageNotFound,
)
from ...core.closure import CLASSIFIED, Classification, Closure
from ...core.config import E_NOPKG, E_OK


def options_from_args(args) -> AnalysisOptions:
    """Build the analysis options from parsed command line arguments."""
    reverse = getattr(args, 'reverse', 0) or 0
    if reverse:
        # the requirers are the point of a reverse report
        listed = frozenset(CLASSIFIED)
    else:
        flags = {
            Classification.EXCLUSIVE: 'list_exclusive',
            Classification.EXCLUSIVE_EXPLICIT: 'list_exclusive_explicit',
            Classification.SHARED: 'list_shared',
            Classification.SHARED_EXPLICIT: 'list_shared_explicit',
            Classification.OPTIONAL: 'list_optional',
            Classification.OPTIONAL_EXPLICIT: 'list_optional_explicit',
        }
        listed = frozenset(c for c, flag in flags.items() if getattr(args, flag, False))

    show_optional = getattr(args, 'show_optional', 0) or 0
    if not show_optional and (getattr(args, 'list_optional', False)
                              or getattr(args, 'list_optional_explicit', False)):
        show_optional = 1

    return AnalysisOptions(
        explicit=getattr(args, 'explicit', False),
        show_optional=show_optional,
        reverse=reverse,
        from_sync=getattr(args, 'from_sync', False),
        sort_by_size=getattr(args, 'sort_size', False),
        listed=listed,
    )


def _closures(analyzer: Analyzer, names, together: bool
              ) -> Iterator[Tuple[str, Union[Closure, PackageNotFound]]]:
    if not together:
        yield from analyzer.analyze_each(names)
        return

    try:
        if analyzer.options.reverse:
            closure = analyzer.required_by(names)
        else:
            closure = analyzer.analyze(names)
    except NothingToProcess as e:
        for name in e.not_found:
            yield name, PackageNotFound(name)
        return
    for name in closure.not_found:
        yield name, PackageNotFound(name)
    yield ' '.join(names), closure


def cmd_report(args, db: 'PackageDatabase') -> int:
    """Handle the report: one per requested package, or one for all."""
    from .. import colors, display

    options = options_from_args(args)
    analyzer = Analyzer(db, options)
    as_json = getattr(args, 'json', False)

    results = []
    printed = 0
    for name, result in _closures(analyzer, args.packages, getattr(args, 'together', False)):
        if isinstance(result, PackageNotFound):
            print(colors.error(str(result)), file=sys.stderr)
            continue

        if as_json:
            results.append(display.closure_to_dict(result))
            continue

        if options.reverse:
            lines = display.format_reverse_report(
                result, explicit=options.explicit,
                show_optional=options.reverse_depth >= 1,
            )
        else:
            lines = display.format_report(
                result, explicit=options.explicit,
                show_optional=bool(options.show_optional),
            )
        if printed:
            print()
        for line in lines:
            print(line)
        printed += 1

    if as_json:
        display.print_json(results)
        printed = len(results)

    return E_OK if printed else E_NOPKG

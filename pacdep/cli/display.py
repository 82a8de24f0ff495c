"""Display utilities for pacdep CLI.

Renders a classified closure as the text report:

    firefox                 55.12 MiB (112.40 MiB)
    Exclusive dependencies: 57.28 MiB
     nss                     4.50 MiB
     ...
    Shared dependencies:   250.01 MiB
    Total dependencies:    307.29 MiB (362.41 MiB)

or as JSON (--json).
"""

import json
from typing import Any, Callable, Dict, List

from ..core.closure import Classification, Closure, PackageNode, TITLES
from . import colors

# Units of format_size(), in order
SIZE_UNITS = ("B", "KiB", "MiB", "GiB")

# Title of the summary line when several packages are analysed together
PACKAGES_TITLE = "Packages:"

# Reverse report titles
REVERSE_TITLES = {
    Classification.EXCLUSIVE: "Required by:",
    Classification.EXCLUSIVE_EXPLICIT: "Required by (explicit):",
    Classification.OPTIONAL: "Optional for:",
    Classification.OPTIONAL_EXPLICIT: "Optional for (explicit):",
}


def format_size(size: float) -> str:
    """Format bytes IEC style, right-aligned on 6 digits.

    >>> format_size(512)
    '   512 B'
    >>> format_size(1536)
    '  1.50 KiB'
    """
    hsize = float(size)
    unit = 0
    while hsize > 1024.0 and unit < len(SIZE_UNITS) - 1:
        unit += 1
        hsize /= 1024.0
    if unit == 0:
        return f"{hsize:6.0f} {SIZE_UNITS[unit]}"
    return f"{hsize:6.2f} {SIZE_UNITS[unit]}"


def _pad(text: str, width: int, color_func: Callable[[str], str] = None) -> str:
    """Left-align text on width columns, colorizing the text only."""
    # always keep one space before the size
    padding = ' ' * max(width - len(text), 1)
    if color_func is not None:
        text = color_func(text)
    return f"{text}{padding}"


def _with_total(line: str, total: int) -> str:
    return f"{line} ({format_size(total)})"


def title_width(titles: List[str]) -> int:
    # +1 for the space before the size
    return max(len(t) for t in titles) + 1


def root_label(root: PackageNode) -> str:
    """How a requested package is named on its report line."""
    if root.is_provided:
        return f"{root.requested_name} is provided by {root.display_name}"
    return root.display_name


def format_members(closure: Closure, classification: Classification) -> List[str]:
    """Lines listing the members of a classification, with their sizes.

    Groups mixing installed and repository packages get local:/sync:
    sub-totals, each before its members.
    """
    record = closure.record(classification)
    color_func = colors.for_classification(classification)
    lines = []
    mixed = record.is_mixed
    indent = "  " if mixed else " "
    local_done = sync_done = False

    for node in record.members:
        if mixed and not local_done:
            lines.append(f" {'local:':<8}{format_size(record.local_size)}")
            local_done = True
        if mixed and not node.is_local and not sync_done:
            lines.append(f" {'sync:':<8}{format_size(record.sync_size)}")
            sync_done = True
        label = _pad(node.display_name, record.width, color_func)
        lines.append(f"{indent}{label}{format_size(node.size)}")
    return lines


def _category_lines(closure: Closure, title: str, classification: Classification,
                    width: int, combined: bool = False) -> List[str]:
    """Header line of a classification, then its listed members.

    With combined, the total of the classification and its base
    (non-explicit) variant follows when both are non-zero.
    """
    size = closure.record(classification).total_size
    line = f"{_pad(title, width)}{format_size(size)}"
    if combined:
        base_size = closure.record(classification.base).total_size
        if base_size > 0 and size > 0:
            line = _with_total(line, base_size + size)
    return [line] + format_members(closure, classification)


def _root_lines(closure: Closure, width: int, with_total: bool) -> List[str]:
    lines = []
    single = len(closure.roots) == 1
    for root in closure.roots:
        label = root_label(root)
        line = f"{_pad(label, width, colors.bold)}{format_size(root.size)}"
        if single and with_total and closure.removable_size > root.size:
            line = _with_total(line, closure.removable_size)
        lines.append(line)

    if not single and with_total:
        line = f"{_pad(PACKAGES_TITLE, width)}{format_size(closure.root_size)}"
        if closure.removable_size > closure.root_size:
            line = _with_total(line, closure.removable_size)
        lines.append(line)
    return lines


def format_report(closure: Closure, explicit: bool = False,
                  show_optional: bool = False) -> List[str]:
    """Forward report of a classified closure.

    Args:
        closure: Settled closure
        explicit: Include the *_EXPLICIT classifications
        show_optional: Include the optional classifications

    Returns:
        List of lines ready to print
    """
    shown = [Classification.EXCLUSIVE]
    if explicit:
        shown.append(Classification.EXCLUSIVE_EXPLICIT)
    if show_optional:
        shown.append(Classification.OPTIONAL)
        if explicit:
            shown.append(Classification.OPTIONAL_EXPLICIT)
    shown.append(Classification.SHARED)
    if explicit:
        shown.append(Classification.SHARED_EXPLICIT)

    width = title_width([TITLES[c] for c in shown] + [PACKAGES_TITLE])

    lines = _root_lines(closure, width, with_total=True)
    for classification in shown:
        lines.extend(_category_lines(
            closure, TITLES[classification], classification, width,
            combined=classification.is_explicit,
        ))

    total = f"{_pad(TITLES[Classification.UNKNOWN], width)}{format_size(closure.dependencies_size)}"
    lines.append(_with_total(total, closure.root_size + closure.dependencies_size))
    return lines


def format_reverse_report(closure: Closure, explicit: bool = False,
                          show_optional: bool = False) -> List[str]:
    """Reverse report: who requires the roots.

    Args:
        closure: Requirers closure
        explicit: Include the explicitly installed requirers line
        show_optional: Include the optional requirers lines
    """
    shown = [Classification.EXCLUSIVE]
    if explicit:
        shown.append(Classification.EXCLUSIVE_EXPLICIT)
    if show_optional:
        shown.append(Classification.OPTIONAL)
        if explicit:
            shown.append(Classification.OPTIONAL_EXPLICIT)

    width = title_width([REVERSE_TITLES[c] for c in shown])

    lines = _root_lines(closure, width, with_total=False)
    for classification in shown:
        lines.extend(_category_lines(
            closure, REVERSE_TITLES[classification], classification, width,
        ))
    return lines


def _node_to_dict(node: PackageNode) -> Dict[str, Any]:
    return {
        'name': node.name,
        'version': node.package.version,
        'repo': node.repo,
        'size': node.size,
    }


def closure_to_dict(closure: Closure) -> Dict[str, Any]:
    """JSON-friendly form of a closure; lists every member, listed or not."""
    categories = {}
    for classification, record in closure.records.items():
        members = sorted(closure.members(classification),
                         key=lambda n: (n.repo is not None, n.name))
        categories[classification.name.lower()] = {
            'size': record.total_size,
            'local_size': record.local_size,
            'packages': [_node_to_dict(n) for n in members],
        }

    roots = []
    for root in closure.roots:
        entry = _node_to_dict(root)
        entry['requested'] = root.requested_name
        roots.append(entry)

    data = {
        'reverse': closure.reverse,
        'packages': roots,
        'categories': categories,
        'unresolved': list(closure.unresolved),
    }
    if not closure.reverse:
        data['total'] = {
            'dependencies': closure.dependencies_size,
            'removable': closure.removable_size,
        }
    return data


def format_dict_as_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


def print_json(data: Any) -> None:
    """Print data as JSON."""
    print(format_dict_as_json(data))

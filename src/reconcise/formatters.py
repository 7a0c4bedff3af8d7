"""
Formatters for plans, pass results and inspected resources.

Example:
    from reconcise.formatters import OutputFormat, format_plan

    print(format_plan({"ec2_instance": diff}, OutputFormat.TABLE))
"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any

import yaml

from .models import inspect_resources

if TYPE_CHECKING:
    from .differ import Diff
    from .reconciler import ReconcileResult

SYMBOLS = {"create": "+", "destroy": "-", "sync": "~"}


class OutputFormat(Enum):
    """Output format for CLI rendering."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


def _dump(data: Any, fmt: OutputFormat) -> str:
    if fmt == OutputFormat.YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip()
    return json.dumps(data, indent=2, default=str)


def format_plan(diffs: dict[str, Diff[Any, Any]], fmt: OutputFormat = OutputFormat.TABLE) -> str:
    """
    Render planned changes.

    Table output lists one change per line, ``+`` create, ``-`` destroy,
    ``~`` sync, grouped by kind.
    """
    if fmt != OutputFormat.TABLE:
        return _dump(
            {
                type_name: [
                    {"action": c.action, "target": c.target} for c in diffs[type_name].changes()
                ]
                for type_name in sorted(diffs)
            },
            fmt,
        )

    if all(diff.is_empty for diff in diffs.values()):
        return "No changes. Nothing to create or destroy."

    lines: list[str] = []
    totals = {"create": 0, "destroy": 0, "sync": 0}
    for type_name in sorted(diffs):
        diff = diffs[type_name]
        lines.append(f"{type_name}:")
        for change in diff.changes():
            lines.append(f"  {SYMBOLS[change.action]} {change.action} {change.target}")
            totals[change.action] += 1
    lines.append("")
    lines.append(
        f"Plan: {totals['create']} to create, {totals['destroy']} to destroy, "
        f"{totals['sync']} to sync."
    )
    return "\n".join(lines)


def format_results(results: dict[str, ReconcileResult]) -> str:
    """Render per-kind counts of a finished apply."""
    lines: list[str] = []
    for type_name in sorted(results):
        s = results[type_name].summary()
        lines.append(
            f"{type_name}: {s['created']} created, {s['destroyed']} destroyed, "
            f"{s['updated']} updated, {s['synced'] - s['updated']} unchanged."
        )
    return "\n".join(lines)


def format_resources(resources: list[Any], fmt: OutputFormat = OutputFormat.TABLE) -> str:
    """Render inspected resources."""
    docs = inspect_resources(resources)
    if fmt != OutputFormat.TABLE:
        return _dump(docs, fmt)

    if not docs:
        return "No resources found."

    lines = [f"{'Type':<16} {'Id':<32} Output", "-" * 80]
    for doc in docs:
        output = ", ".join(f"{k}={v}" for k, v in doc["output"].items() if v is not None)
        resource_id = doc["id"]
        if len(resource_id) > 30:
            resource_id = resource_id[:27] + "..."
        lines.append(f"{doc.get('type', ''):<16} {resource_id:<32} {output}")
    return "\n".join(lines)

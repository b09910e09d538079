"""Output formatters for validation results and stack diffs."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.text import Text
from rich.tree import Tree

from stackguard.models import (
    IssueSeverity,
    PropertyChange,
    ResourceDiff,
    StackDiff,
    ValidationResult,
)

SEVERITY_COLORS = {
    IssueSeverity.ERROR: "bold red",
    IssueSeverity.WARNING: "yellow",
    IssueSeverity.INFO: "dim",
}

ACTION_STYLES = {
    "add": ("+", "green"),
    "remove": ("-", "red"),
    "replace": ("~", "bold red"),
    "update": ("~", "yellow"),
}

REDACTED = "[REDACTED]"

MAX_CHANGES_SHOWN = 3


def _escape_md_cell(value: str) -> str:
    """Escape characters that break markdown table cells."""
    return value.replace("|", "\\|").replace("\n", " ")


def _render(value: Any, redact: bool) -> str:
    if redact:
        return REDACTED
    return json.dumps(value, default=str)


def _change_lines(changes: list[PropertyChange], redact: bool) -> list[str]:
    lines = [
        f"{c.path}: {_render(c.old_value, redact)} → {_render(c.new_value, redact)}"
        for c in changes[:MAX_CHANGES_SHOWN]
    ]
    if len(changes) > MAX_CHANGES_SHOWN:
        lines.append(f"... and {len(changes) - MAX_CHANGES_SHOWN} more changes")
    return lines


def format_diff_text(diff: StackDiff, *, redact: bool = False) -> str:
    """Format a stack diff as a plain multi-section report."""
    lines = ["=== Stack Update Analysis ===", ""]

    if diff.summary.total_changes == 0:
        lines.append("No changes detected.")
        return "\n".join(lines)

    lines.append(f"Total changes: {diff.summary.total_changes}")
    lines.append(f"Requires replacement: {'Yes' if diff.summary.requires_replacement else 'No'}")
    lines.append("")

    if diff.summary.dangerous_changes:
        lines.append("DANGEROUS CHANGES DETECTED:")
        lines.extend(f"  • {warning}" for warning in diff.summary.dangerous_changes)
        lines.append("")

    sections: list[tuple[str, list[ResourceDiff], str]] = [
        ("Resources to Add", diff.added, "+"),
        ("Resources to Remove", diff.removed, "-"),
        ("Resources to Replace", diff.replaced, "~"),
        ("Resources to Update", diff.updated, "~"),
    ]
    for title, resources, marker in sections:
        if not resources:
            continue
        lines.append(f"{title} ({len(resources)}):")
        for rd in resources:
            lines.append(f"  {marker} {rd.logical_id} ({rd.resource_type})")
            if rd.reason:
                lines.append(f"    Reason: {rd.reason}")
            lines.extend(f"    • {line}" for line in _change_lines(rd.changes, redact))
        lines.append("")

    if diff.unchanged:
        lines.append(f"Unchanged Resources ({len(diff.unchanged)})")

    return "\n".join(lines)


def _resource_json(rd: ResourceDiff, redact: bool) -> dict[str, Any]:
    return {
        "logical_id": rd.logical_id,
        "action": rd.action.value,
        "resource_type": rd.resource_type,
        "reason": rd.reason,
        "changes": [
            {
                "path": c.path,
                "old_value": REDACTED if redact else c.old_value,
                "new_value": REDACTED if redact else c.new_value,
                "requires_replacement": c.requires_replacement,
            }
            for c in rd.changes
        ],
    }


def format_diff_json(diff: StackDiff, *, redact: bool = False) -> str:
    """Format a stack diff as JSON."""
    return json.dumps(
        {
            "summary": {
                "total_changes": diff.summary.total_changes,
                "requires_replacement": diff.summary.requires_replacement,
                "dangerous_changes": diff.summary.dangerous_changes,
                "parameters_changed": diff.parameters_changed,
                "outputs_changed": diff.outputs_changed,
            },
            "added": [_resource_json(rd, redact) for rd in diff.added],
            "removed": [_resource_json(rd, redact) for rd in diff.removed],
            "updated": [_resource_json(rd, redact) for rd in diff.updated],
            "replaced": [_resource_json(rd, redact) for rd in diff.replaced],
            "unchanged": diff.unchanged,
        },
        indent=2,
        default=str,
    )


def format_diff_markdown(diff: StackDiff, *, redact: bool = False) -> str:
    """Format a stack diff as Markdown, suitable for PR comments."""
    if diff.summary.total_changes == 0:
        return "No changes detected."

    replacement = "yes" if diff.summary.requires_replacement else "no"
    lines = [
        f"## Stack Diff: {diff.summary.total_changes} changes (replacement: {replacement})",
        "",
    ]

    if diff.summary.dangerous_changes:
        lines.append("### Dangerous changes")
        lines.append("")
        lines.extend(f"- :warning: {_escape_md_cell(w)}" for w in diff.summary.dangerous_changes)
        lines.append("")

    lines.append("| Resource | Type | Action | Property | Old | New |")
    lines.append("|----------|------|--------|----------|-----|-----|")

    for rd in [*diff.added, *diff.removed, *diff.replaced, *diff.updated]:
        logical_id = _escape_md_cell(rd.logical_id)
        resource_type = _escape_md_cell(str(rd.resource_type))
        action = rd.action.value.upper()
        if not rd.changes:
            detail = _escape_md_cell(rd.reason) if rd.reason else "—"
            lines.append(f"| {logical_id} | {resource_type} | {action} | {detail} | — | — |")
            continue
        for c in rd.changes:
            path = _escape_md_cell(c.path)
            old = _escape_md_cell(_render(c.old_value, redact))
            new = _escape_md_cell(_render(c.new_value, redact))
            lines.append(
                f"| {logical_id} | {resource_type} | {action} | `{path}` | `{old}` | `{new}` |"
            )

    lines.append("")
    if diff.unchanged:
        lines.append(f"{len(diff.unchanged)} resources unchanged.")

    return "\n".join(lines)


def format_diff_table(diff: StackDiff, *, redact: bool = False) -> str:
    """Format a stack diff as a Rich tree view, returned as a string."""
    if diff.summary.total_changes == 0:
        return "No changes detected."

    console = Console(record=True, width=120)
    tree = Tree(f"[bold]Stack Diff[/bold] — {diff.summary.total_changes} changes")

    if diff.summary.dangerous_changes:
        warnings = tree.add("[bold red]Dangerous changes[/bold red]")
        for warning in diff.summary.dangerous_changes:
            warnings.add(Text(warning, style="red"))

    for rd in [*diff.added, *diff.removed, *diff.replaced, *diff.updated]:
        marker, style = ACTION_STYLES[rd.action.value]
        branch = tree.add(
            Text.from_markup(
                f"[{style}]{marker} {escape(rd.logical_id)}[/{style}]"
                f" ({escape(str(rd.resource_type))}) — {rd.action.value}"
            )
        )
        if rd.reason:
            branch.add(Text(rd.reason, style="italic"))
        for c in rd.changes:
            old = escape(_render(c.old_value, redact))
            new = escape(_render(c.new_value, redact))
            flag = " [bold red](replacement)[/bold red]" if c.requires_replacement else ""
            branch.add(
                Text.from_markup(f"{escape(c.path)}: [red]{old}[/red] → [green]{new}[/green]{flag}")
            )

    if diff.unchanged:
        tree.add(Text(f"{len(diff.unchanged)} unchanged", style="dim"))

    console.print(tree)
    return console.export_text()


def format_validation_json(result: ValidationResult) -> str:
    """Format a validation result as JSON."""

    def issues(items):
        return [{"path": i.path, "message": i.message, "severity": i.severity.value} for i in items]

    return json.dumps(
        {
            "valid": result.valid,
            "errors": issues(result.errors),
            "warnings": issues(result.warnings),
            "info": issues(result.info),
        },
        indent=2,
    )


def format_validation_table(result: ValidationResult) -> str:
    """Format a validation result as a Rich tree view, returned as a string."""
    console = Console(record=True, width=120)
    status = "[green]valid[/green]" if result.valid else "[bold red]invalid[/bold red]"
    tree = Tree(Text.from_markup(f"[bold]Template Validation[/bold] — {status}"))

    groups = (
        ("Errors", result.errors),
        ("Warnings", result.warnings),
        ("Info", result.info),
    )
    for title, items in groups:
        if not items:
            continue
        branch = tree.add(f"{title} ({len(items)})")
        for issue in items:
            color = SEVERITY_COLORS[issue.severity]
            branch.add(
                Text.from_markup(f"[{color}]{escape(issue.path)}[/{color}]: {escape(issue.message)}")
            )

    console.print(tree)
    return console.export_text()

"""Core data models for template validation and stack diff analysis."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class IssueSeverity(StrEnum):
    """Severity of a validation finding. Only errors affect validity."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class DiffAction(StrEnum):
    """What a stack update will do to a resource."""

    ADD = "add"
    REMOVE = "remove"
    UPDATE = "update"
    REPLACE = "replace"


@dataclass(frozen=True)
class ValidationIssue:
    """A single finding located by a dotted path into the template."""

    path: str
    message: str
    severity: IssueSeverity


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one or more validation passes over a template."""

    valid: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationIssue]
    info: list[ValidationIssue]

    @property
    def issues(self) -> list[ValidationIssue]:
        return [*self.errors, *self.warnings, *self.info]


def combine_results(*results: ValidationResult) -> ValidationResult:
    """Merge several validation results, keeping issue order per severity."""
    errors = [issue for r in results for issue in r.errors]
    warnings = [issue for r in results for issue in r.warnings]
    info = [issue for r in results for issue in r.info]
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings, info=info)


@dataclass(frozen=True)
class PropertyChange:
    """A changed property value, addressed by a dot-separated path."""

    path: str
    old_value: Any
    new_value: Any
    requires_replacement: bool = False


@dataclass(frozen=True)
class ResourceDiff:
    """The fate of one resource across a stack update."""

    logical_id: str
    action: DiffAction
    resource_type: str | None
    changes: list[PropertyChange] = field(default_factory=list)
    reason: str | None = None


@dataclass(frozen=True)
class DiffSummary:
    total_changes: int
    requires_replacement: bool
    dangerous_changes: list[str]


@dataclass(frozen=True)
class StackDiff:
    """Complete comparison between a deployed template and a proposed one."""

    added: list[ResourceDiff]
    removed: list[ResourceDiff]
    updated: list[ResourceDiff]
    replaced: list[ResourceDiff]
    unchanged: list[str]
    summary: DiffSummary
    parameters_changed: bool = False
    outputs_changed: bool = False

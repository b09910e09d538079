"""Compares a deployed template with a proposed one, resource by resource."""

import json
import logging
from typing import Any

from stackguard.models import (
    DiffAction,
    DiffSummary,
    PropertyChange,
    ResourceDiff,
    StackDiff,
)
from stackguard.policy import ReplacementPolicy, top_level_property

logger = logging.getLogger(__name__)

_MISSING = object()

DATABASE_TYPES = ("AWS::RDS::DBInstance", "AWS::DynamoDB::Table")


def _section(template: Any, name: str) -> dict[str, Any]:
    value = template.get(name) if isinstance(template, dict) else None
    return value if isinstance(value, dict) else {}


def _resource_type(resource: Any) -> str | None:
    return resource.get("Type") if isinstance(resource, dict) else None


def _kind(value: Any) -> str:
    """JSON kind of a value. ``None`` groups with mappings and lists."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if value is None or isinstance(value, dict | list):
        return "object"
    return type(value).__name__


def _string_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _string_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_string_keys(item) for item in value]
    return value


def _canonical_json(value: Any) -> str:
    # YAML mappings may mix int and str keys, which sort_keys cannot order
    return json.dumps(_string_keys(value), sort_keys=True, default=str)


def compare_properties(
    old: dict[str, Any], new: dict[str, Any], path: str = ""
) -> list[PropertyChange]:
    """Diff two property mappings, recursing into nested mappings.

    Lists are compared as a whole. A list that differs in any element is a
    single change at the list's path.
    """
    changes: list[PropertyChange] = []
    for key in dict.fromkeys([*old, *new]):
        current = f"{path}.{key}" if path else str(key)
        old_value = old.get(key, _MISSING)
        new_value = new.get(key, _MISSING)

        if old_value is _MISSING:
            changes.append(PropertyChange(current, None, new_value))
        elif new_value is _MISSING:
            changes.append(PropertyChange(current, old_value, None))
        elif _kind(old_value) != _kind(new_value):
            changes.append(PropertyChange(current, old_value, new_value))
        elif isinstance(old_value, dict) and isinstance(new_value, dict):
            changes.extend(compare_properties(old_value, new_value, current))
        elif isinstance(old_value, list) and isinstance(new_value, list):
            if _canonical_json(old_value) != _canonical_json(new_value):
                changes.append(PropertyChange(current, old_value, new_value))
        elif old_value != new_value:
            changes.append(PropertyChange(current, old_value, new_value))
    return changes


def _properties(resource: Any) -> dict[str, Any]:
    props = resource.get("Properties") if isinstance(resource, dict) else None
    if props is None:
        return {}
    # A non-mapping Properties value still diffs, as one opaque property
    return props if isinstance(props, dict) else {"Properties": props}


def analyze_stack_diff(
    old_template: dict[str, Any],
    new_template: dict[str, Any],
    policy: ReplacementPolicy | None = None,
) -> StackDiff:
    """Classify every resource's fate when ``old_template`` is updated to ``new_template``."""
    policy = policy or ReplacementPolicy()

    added: list[ResourceDiff] = []
    removed: list[ResourceDiff] = []
    updated: list[ResourceDiff] = []
    replaced: list[ResourceDiff] = []
    unchanged: list[str] = []

    old_resources = _section(old_template, "Resources")
    new_resources = _section(new_template, "Resources")

    for logical_id in dict.fromkeys([*old_resources, *new_resources]):
        in_old = logical_id in old_resources
        in_new = logical_id in new_resources
        old_resource = old_resources.get(logical_id)
        new_resource = new_resources.get(logical_id)
        old_type = _resource_type(old_resource)
        new_type = _resource_type(new_resource)

        if not in_old:
            added.append(ResourceDiff(logical_id, DiffAction.ADD, new_type))
            continue
        if not in_new:
            removed.append(ResourceDiff(logical_id, DiffAction.REMOVE, old_type))
            continue

        if old_type != new_type:
            replaced.append(
                ResourceDiff(
                    logical_id,
                    DiffAction.REPLACE,
                    new_type,
                    reason=f"Type changed from {old_type} to {new_type}",
                )
            )
            continue

        changes = compare_properties(_properties(old_resource), _properties(new_resource))
        if not changes:
            unchanged.append(logical_id)
            continue

        forcing = policy.replacement_properties(new_type, changes)
        changes = [
            PropertyChange(
                c.path,
                c.old_value,
                c.new_value,
                requires_replacement=top_level_property(c.path) in forcing,
            )
            for c in changes
        ]
        if forcing:
            replaced.append(
                ResourceDiff(
                    logical_id,
                    DiffAction.REPLACE,
                    new_type,
                    changes=changes,
                    reason=f"Changing {', '.join(forcing)} requires replacement",
                )
            )
        else:
            updated.append(ResourceDiff(logical_id, DiffAction.UPDATE, new_type, changes=changes))

    dangerous = identify_dangerous_changes([*removed, *replaced, *updated])

    summary = DiffSummary(
        total_changes=len(added) + len(removed) + len(updated) + len(replaced),
        requires_replacement=bool(replaced),
        dangerous_changes=dangerous,
    )
    logger.debug(
        "Stack diff: %d added, %d removed, %d updated, %d replaced, %d unchanged",
        len(added),
        len(removed),
        len(updated),
        len(replaced),
        len(unchanged),
    )

    return StackDiff(
        added=added,
        removed=removed,
        updated=updated,
        replaced=replaced,
        unchanged=unchanged,
        summary=summary,
        parameters_changed=_canonical_json(_section(old_template, "Parameters"))
        != _canonical_json(_section(new_template, "Parameters")),
        outputs_changed=_canonical_json(_section(old_template, "Outputs"))
        != _canonical_json(_section(new_template, "Outputs")),
    )


def identify_dangerous_changes(diffs: list[ResourceDiff]) -> list[str]:
    """Describe each change that risks data loss, downtime, connectivity or permissions."""
    dangerous: list[str] = []

    for diff in diffs:
        action = diff.action
        resource_type = diff.resource_type

        if action == DiffAction.REMOVE and (
            resource_type in DATABASE_TYPES or resource_type == "AWS::ElastiCache::CacheCluster"
        ):
            dangerous.append(f"Removing {resource_type} {diff.logical_id} - data loss risk!")

        if action == DiffAction.REPLACE and resource_type in DATABASE_TYPES:
            dangerous.append(f"Replacing {resource_type} {diff.logical_id} - data loss risk!")

        if action in (DiffAction.REMOVE, DiffAction.REPLACE) and resource_type == "AWS::S3::Bucket":
            verb = "Removing" if action == DiffAction.REMOVE else "Replacing"
            dangerous.append(f"{verb} S3 bucket {diff.logical_id} - data loss risk!")

        if action == DiffAction.REPLACE and resource_type == "AWS::EC2::Instance":
            dangerous.append(f"Replacing EC2 instance {diff.logical_id} - downtime expected")

        if action == DiffAction.UPDATE and resource_type == "AWS::EC2::SecurityGroup":
            dangerous.append(f"Updating security group {diff.logical_id} - may affect connectivity")

        if action in (DiffAction.UPDATE, DiffAction.REPLACE) and resource_type in (
            "AWS::IAM::Role",
            "AWS::IAM::Policy",
        ):
            kind = resource_type.split("::")[2]
            dangerous.append(f"Modifying IAM {kind} {diff.logical_id} - may affect permissions")

    return dangerous

"""Replacement-policy overrides loaded from a YAML or JSON file.

The file holds a single ``replacement_properties`` mapping of resource type to
the list of top-level properties whose change forces replacement::

    replacement_properties:
      AWS::ECS::Service: [ServiceName, LaunchType]
      AWS::Lambda::Function: []

Each listed type replaces the built-in entry for that type; other types keep
their defaults.
"""

import logging
from pathlib import Path

import yaml

from stackguard.policy import ReplacementPolicy

logger = logging.getLogger(__name__)

POLICY_FILE_ENVVAR = "STACKGUARD_POLICY_FILE"


class PolicyConfigError(Exception):
    """The policy file is unreadable or malformed."""


def load_policy(path: str | Path | None = None) -> ReplacementPolicy:
    """Build a ReplacementPolicy, applying overrides from ``path`` when given."""
    policy = ReplacementPolicy()
    if path is None:
        return policy

    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise PolicyConfigError(f"Could not read policy file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise PolicyConfigError(f"Could not parse policy file {path}: {exc}") from exc

    if data is None:
        return policy
    if not isinstance(data, dict):
        raise PolicyConfigError(f"Policy file {path} must contain a mapping")

    overrides = data.get("replacement_properties", {})
    if not isinstance(overrides, dict):
        raise PolicyConfigError("replacement_properties must map resource types to property lists")

    for resource_type, names in overrides.items():
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise PolicyConfigError(
                f"replacement_properties[{resource_type!r}] must be a list of property names"
            )
        if resource_type not in policy:
            logger.debug("Adding replacement policy for %s", resource_type)

    unknown = set(data) - {"replacement_properties"}
    if unknown:
        logger.warning("Ignoring unknown policy file keys: %s", ", ".join(sorted(unknown)))

    return policy.with_overrides(overrides)

"""Structural, reference and best-practice validation of CloudFormation templates."""

import logging
import re
from typing import Any

from stackguard.graph import build_dependency_graph, find_cycles
from stackguard.models import IssueSeverity, ValidationIssue, ValidationResult
from stackguard.nodes import PSEUDO_PARAMETERS, AttrRef, DirectRef, iter_references, parse_value

logger = logging.getLogger(__name__)

FORMAT_VERSION = "2010-09-09"

MAX_RESOURCES = 500
MAX_PARAMETERS = 200
MAX_OUTPUTS = 200

# Bytes, per CloudFormation's TemplateBody and TemplateURL ceilings.
MAX_DIRECT_UPLOAD_SIZE = 51_200
MAX_S3_UPLOAD_SIZE = 460_800

LOGICAL_ID_PATTERN = re.compile(r"[a-zA-Z0-9]+")
RESOURCE_TYPE_PREFIXES = ("AWS::", "Custom::")
DELETION_POLICIES = ("Delete", "Retain", "Snapshot")

DATA_RESOURCE_TYPES: frozenset[str] = frozenset(
    {
        "AWS::S3::Bucket",
        "AWS::DynamoDB::Table",
        "AWS::RDS::DBInstance",
        "AWS::RDS::DBCluster",
        "AWS::ElastiCache::CacheCluster",
        "AWS::ElastiCache::ReplicationGroup",
        "AWS::EFS::FileSystem",
        "AWS::OpenSearchService::Domain",
    }
)

UNTAGGABLE_RESOURCE_TYPES: frozenset[str] = frozenset(
    {
        "AWS::CloudFormation::Stack",
        "AWS::CloudFormation::WaitCondition",
        "AWS::CloudFormation::WaitConditionHandle",
    }
)

PARAMETER_TYPES: frozenset[str] = frozenset(
    {
        "String",
        "Number",
        "List<Number>",
        "CommaDelimitedList",
        "AWS::EC2::AvailabilityZone::Name",
        "AWS::EC2::Image::Id",
        "AWS::EC2::Instance::Id",
        "AWS::EC2::KeyPair::KeyName",
        "AWS::EC2::SecurityGroup::GroupName",
        "AWS::EC2::SecurityGroup::Id",
        "AWS::EC2::Subnet::Id",
        "AWS::EC2::Volume::Id",
        "AWS::EC2::VPC::Id",
        "AWS::Route53::HostedZone::Id",
        "List<AWS::EC2::AvailabilityZone::Name>",
        "List<AWS::EC2::Image::Id>",
        "List<AWS::EC2::Instance::Id>",
        "List<AWS::EC2::SecurityGroup::GroupName>",
        "List<AWS::EC2::SecurityGroup::Id>",
        "List<AWS::EC2::Subnet::Id>",
        "List<AWS::EC2::Volume::Id>",
        "List<AWS::EC2::VPC::Id>",
        "List<AWS::Route53::HostedZone::Id>",
        "AWS::SSM::Parameter::Name",
        "AWS::SSM::Parameter::Value<String>",
        "AWS::SSM::Parameter::Value<List<String>>",
        "AWS::SSM::Parameter::Value<CommaDelimitedList>",
    }
)


def is_data_resource(resource_type: str | None) -> bool:
    """Whether deleting or replacing this resource type can lose stored data."""
    return isinstance(resource_type, str) and resource_type in DATA_RESOURCE_TYPES


def supports_tagging(resource_type: str | None) -> bool:
    return isinstance(resource_type, str) and resource_type not in UNTAGGABLE_RESOURCE_TYPES


class _Issues:
    """Accumulates findings for a single validation call."""

    def __init__(self):
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []
        self.info: list[ValidationIssue] = []

    def error(self, path: str, message: str) -> None:
        self.errors.append(ValidationIssue(path, message, IssueSeverity.ERROR))

    def warning(self, path: str, message: str) -> None:
        self.warnings.append(ValidationIssue(path, message, IssueSeverity.WARNING))

    def note(self, path: str, message: str) -> None:
        self.info.append(ValidationIssue(path, message, IssueSeverity.INFO))

    def result(self) -> ValidationResult:
        return ValidationResult(
            valid=not self.errors,
            errors=self.errors,
            warnings=self.warnings,
            info=self.info,
        )


def _section(template: dict[str, Any], name: str) -> dict[str, Any]:
    value = template.get(name)
    return value if isinstance(value, dict) else {}


def validate_template(template: dict[str, Any]) -> ValidationResult:
    """Validate a template and report every problem found.

    Nothing is raised for malformed input: each check appends to the error,
    warning or info list and later checks still run. The result is valid
    only when no errors were recorded.
    """
    issues = _Issues()

    _check_format_version(template, issues)
    _check_resources(template, issues)
    _check_parameters(template, issues)
    _check_outputs(template, issues)
    _check_references(template, issues)
    _check_cycles(template, issues)
    _check_best_practices(template, issues)

    result = issues.result()
    logger.debug(
        "Validated template: %d errors, %d warnings, %d info",
        len(result.errors),
        len(result.warnings),
        len(result.info),
    )
    return result


def _check_format_version(template: dict[str, Any], issues: _Issues) -> None:
    version = template.get("AWSTemplateFormatVersion")
    if not version:
        issues.error("AWSTemplateFormatVersion", "Template should specify AWSTemplateFormatVersion")
    elif version != FORMAT_VERSION:
        issues.error("AWSTemplateFormatVersion", f'AWSTemplateFormatVersion must be "{FORMAT_VERSION}"')


def _check_resources(template: dict[str, Any], issues: _Issues) -> None:
    resources = _section(template, "Resources")
    if not resources:
        issues.error("Resources", "Template must contain at least one resource")
        return

    if len(resources) > MAX_RESOURCES:
        issues.warning(
            "Resources",
            f"Template contains {len(resources)} resources (limit is {MAX_RESOURCES})",
        )

    for logical_id, resource in resources.items():
        path = f"Resources.{logical_id}"

        if not LOGICAL_ID_PATTERN.fullmatch(str(logical_id)):
            issues.error(path, f"Logical ID {logical_id!r} must contain only alphanumeric characters")

        if not isinstance(resource, dict):
            issues.error(path, "Resource must be a mapping")
            continue

        resource_type = resource.get("Type")
        if not resource_type:
            issues.error(f"{path}.Type", "Resource Type is required")
        elif not isinstance(resource_type, str) or not resource_type.startswith(
            RESOURCE_TYPE_PREFIXES
        ):
            issues.error(f"{path}.Type", 'Resource Type must start with "AWS::" or "Custom::"')

        policy = resource.get("DeletionPolicy")
        if policy is not None and policy not in DELETION_POLICIES:
            issues.error(
                f"{path}.DeletionPolicy",
                'DeletionPolicy must be "Delete", "Retain", or "Snapshot"',
            )
        if policy is None and is_data_resource(resource_type):
            issues.warning(
                f"{path}.DeletionPolicy",
                f"{resource_type} should specify DeletionPolicy to prevent accidental data loss",
            )


def _check_parameters(template: dict[str, Any], issues: _Issues) -> None:
    parameters = _section(template, "Parameters")

    if len(parameters) > MAX_PARAMETERS:
        issues.warning(
            "Parameters",
            f"Template contains {len(parameters)} parameters (limit is {MAX_PARAMETERS})",
        )

    for name, parameter in parameters.items():
        path = f"Parameters.{name}.Type"
        param_type = parameter.get("Type") if isinstance(parameter, dict) else None
        if not param_type:
            issues.error(path, "Parameter Type is required")
        elif not isinstance(param_type, str) or param_type not in PARAMETER_TYPES:
            issues.error(path, f"Invalid parameter type: {param_type}")


def _check_outputs(template: dict[str, Any], issues: _Issues) -> None:
    for name, output in _section(template, "Outputs").items():
        value = output.get("Value") if isinstance(output, dict) else None
        if value is None or value == "":
            issues.error(f"Outputs.{name}.Value", "Output Value is required")


def _check_references(template: dict[str, Any], issues: _Issues) -> None:
    resources = _section(template, "Resources")
    parameters = _section(template, "Parameters")

    def check(value: Any, path: str) -> None:
        for ref_path, ref in iter_references(parse_value(value), path):
            match ref:
                case DirectRef(target=target):
                    if (
                        target not in resources
                        and target not in parameters
                        and target not in PSEUDO_PARAMETERS
                    ):
                        issues.error(
                            ref_path,
                            f"Reference to non-existent resource or parameter: {target}",
                        )
                case AttrRef(target=target):
                    if target not in resources:
                        issues.error(ref_path, f"GetAtt references non-existent resource: {target}")

    for logical_id, resource in resources.items():
        if not isinstance(resource, dict):
            continue
        path = f"Resources.{logical_id}"
        check(resource.get("Properties", {}), f"{path}.Properties")

        depends_on = resource.get("DependsOn")
        targets = [depends_on] if isinstance(depends_on, str) else depends_on or []
        if isinstance(targets, list):
            for target in targets:
                if not isinstance(target, str) or target not in resources:
                    issues.error(
                        f"{path}.DependsOn",
                        f"DependsOn references non-existent resource: {target}",
                    )

    for name, output in _section(template, "Outputs").items():
        if isinstance(output, dict) and "Value" in output:
            check(output["Value"], f"Outputs.{name}.Value")


def _check_cycles(template: dict[str, Any], issues: _Issues) -> None:
    graph = build_dependency_graph(_section(template, "Resources"))
    for cycle in find_cycles(graph):
        issues.error("Resources", f"Circular dependency detected: {' → '.join(cycle)}")


def _check_best_practices(template: dict[str, Any], issues: _Issues) -> None:
    if not template.get("Description"):
        issues.note("Description", "Consider adding a Description to the template")

    for logical_id, resource in _section(template, "Resources").items():
        if not isinstance(resource, dict):
            continue
        path = f"Resources.{logical_id}"
        resource_type = resource.get("Type")
        properties = resource.get("Properties")
        props = properties if isinstance(properties, dict) else {}

        if (
            isinstance(properties, dict)
            and resource_type
            and "Tags" not in properties
            and supports_tagging(resource_type)
        ):
            issues.note(path, f"Consider adding Tags to {resource_type}")

        if resource_type == "AWS::S3::Bucket" and not props.get("BucketEncryption"):
            issues.warning(path, "S3 bucket should enable encryption")

        if resource_type == "AWS::RDS::DBInstance" and not props.get("StorageEncrypted"):
            issues.warning(path, "RDS instance should enable storage encryption")


def validate_template_size(template_body: str) -> ValidationResult:
    """Check a serialized template against CloudFormation's upload ceilings."""
    issues = _Issues()
    size = len(template_body.encode("utf-8"))
    size_kb = size / 1024

    if size > MAX_S3_UPLOAD_SIZE:
        issues.error(
            "Template",
            f"Template size ({size_kb:.2f} KB) exceeds maximum size of "
            f"{MAX_S3_UPLOAD_SIZE // 1024} KB",
        )
    elif size > MAX_DIRECT_UPLOAD_SIZE:
        issues.warning(
            "Template",
            f"Template size ({size_kb:.2f} KB) exceeds {MAX_DIRECT_UPLOAD_SIZE // 1024} KB. "
            "Must use S3 for deployment.",
        )

    return issues.result()


def validate_resource_limits(template: dict[str, Any]) -> ValidationResult:
    """Check section sizes against CloudFormation's hard limits."""
    issues = _Issues()
    limits = (
        ("Resources", "resources", MAX_RESOURCES),
        ("Parameters", "parameters", MAX_PARAMETERS),
        ("Outputs", "outputs", MAX_OUTPUTS),
    )
    for section, noun, limit in limits:
        count = len(_section(template, section))
        if count > limit:
            issues.error(section, f"Template has {count} {noun} (limit is {limit})")
    return issues.result()

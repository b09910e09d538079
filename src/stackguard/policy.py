"""Which property changes force CloudFormation to replace a resource."""

from collections.abc import Iterable, Mapping

from stackguard.models import PropertyChange

DEFAULT_REPLACEMENT_PROPERTIES: dict[str, frozenset[str]] = {
    "AWS::S3::Bucket": frozenset({"BucketName"}),
    "AWS::DynamoDB::Table": frozenset({"TableName", "KeySchema"}),
    "AWS::RDS::DBInstance": frozenset({"DBInstanceIdentifier", "DBName", "Engine"}),
    "AWS::Lambda::Function": frozenset({"FunctionName"}),
    "AWS::EC2::Instance": frozenset({"ImageId", "InstanceType", "KeyName"}),
    "AWS::ECS::TaskDefinition": frozenset({"Family", "ContainerDefinitions"}),
    "AWS::ElastiCache::CacheCluster": frozenset({"CacheNodeType", "Engine"}),
    # Most distribution properties update in place
    "AWS::CloudFront::Distribution": frozenset(),
    "AWS::Route53::HostedZone": frozenset({"Name"}),
    "AWS::IAM::Role": frozenset({"RoleName", "Path"}),
    "AWS::KMS::Key": frozenset({"KeyPolicy"}),
    "AWS::Cognito::UserPool": frozenset({"UserPoolName"}),
    "AWS::OpenSearchService::Domain": frozenset({"DomainName"}),
}


def top_level_property(path: str) -> str:
    return path.split(".", 1)[0]


class ReplacementPolicy:
    """Maps resource types to the top-level properties whose change forces replacement.

    Types missing from the table never force replacement; such changes are
    treated as in-place updates.
    """

    def __init__(self, properties: Mapping[str, Iterable[str]] | None = None):
        source = DEFAULT_REPLACEMENT_PROPERTIES if properties is None else properties
        self._properties: dict[str, frozenset[str]] = {
            resource_type: frozenset(names) for resource_type, names in source.items()
        }

    def with_overrides(self, overrides: Mapping[str, Iterable[str]]) -> "ReplacementPolicy":
        """Return a new policy where each overridden type's set replaces the current one."""
        merged = dict(self._properties)
        merged.update({resource_type: frozenset(names) for resource_type, names in overrides.items()})
        return ReplacementPolicy(merged)

    def properties_for(self, resource_type: str | None) -> frozenset[str]:
        if not isinstance(resource_type, str):
            return frozenset()
        return self._properties.get(resource_type, frozenset())

    def replacement_properties(
        self, resource_type: str | None, changes: Iterable[PropertyChange]
    ) -> list[str]:
        """Return the forcing properties touched by ``changes``, in first-seen order."""
        forcing = self.properties_for(resource_type)
        found: dict[str, None] = {}
        for change in changes:
            prop = top_level_property(change.path)
            if prop in forcing:
                found[prop] = None
        return list(found)

    def requires_replacement(
        self, resource_type: str | None, changes: Iterable[PropertyChange]
    ) -> bool:
        return bool(self.replacement_properties(resource_type, changes))

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._properties

    def __repr__(self) -> str:
        return f"ReplacementPolicy({len(self._properties)} resource types)"

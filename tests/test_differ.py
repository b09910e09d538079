"""Tests for stack diff analysis."""

from stackguard.differ import analyze_stack_diff, compare_properties, identify_dangerous_changes
from stackguard.models import DiffAction, PropertyChange, ResourceDiff
from stackguard.policy import ReplacementPolicy
from tests.conftest import make_template


def _bucket(**props):
    return {"Type": "AWS::S3::Bucket", "Properties": props}


def test_diff_against_itself_is_all_unchanged():
    template = make_template(
        {
            "Queue": {"Type": "AWS::SQS::Queue", "Properties": {"QueueName": "q"}},
            "Bucket": _bucket(BucketName="b", Tags=[{"Key": "a", "Value": "b"}]),
            "Topic": {"Type": "AWS::SNS::Topic"},
        }
    )
    diff = analyze_stack_diff(template, template)
    assert diff.added == []
    assert diff.removed == []
    assert diff.updated == []
    assert diff.replaced == []
    assert sorted(diff.unchanged) == ["Bucket", "Queue", "Topic"]
    assert diff.summary.total_changes == 0
    assert not diff.summary.requires_replacement


def test_diff_is_idempotent():
    old = make_template({"Bucket": _bucket(BucketName="a")})
    new = make_template({"Bucket": _bucket(BucketName="b"), "Topic": {"Type": "AWS::SNS::Topic"}})
    assert analyze_stack_diff(old, new) == analyze_stack_diff(old, new)


def test_added_resource():
    old = make_template({"A": {"Type": "AWS::SNS::Topic"}})
    new = make_template({"A": {"Type": "AWS::SNS::Topic"}, "B": {"Type": "AWS::SNS::Topic"}})
    diff = analyze_stack_diff(old, new)
    assert [rd.logical_id for rd in diff.added] == ["B"]
    assert diff.added[0].action == DiffAction.ADD
    assert diff.unchanged == ["A"]
    assert diff.summary.total_changes == 1


def test_removed_resource():
    old = make_template({"A": {"Type": "AWS::SNS::Topic"}, "B": {"Type": "AWS::SQS::Queue"}})
    new = make_template({"A": {"Type": "AWS::SNS::Topic"}})
    diff = analyze_stack_diff(old, new)
    assert diff.removed == [ResourceDiff("B", DiffAction.REMOVE, "AWS::SQS::Queue")]


def test_type_change_always_replaces():
    old = make_template({"Store": _bucket(BucketName="same")})
    new = make_template({"Store": {"Type": "AWS::DynamoDB::Table", "Properties": {"BucketName": "same"}}})
    diff = analyze_stack_diff(old, new)
    assert len(diff.replaced) == 1
    replaced = diff.replaced[0]
    assert replaced.action == DiffAction.REPLACE
    assert replaced.reason == "Type changed from AWS::S3::Bucket to AWS::DynamoDB::Table"
    assert replaced.changes == []
    assert diff.summary.requires_replacement


def test_bucket_name_change_replaces():
    old = make_template({"Bucket": _bucket(BucketName="old-name")})
    new = make_template({"Bucket": _bucket(BucketName="new-name")})
    diff = analyze_stack_diff(old, new)
    assert [rd.logical_id for rd in diff.replaced] == ["Bucket"]
    change = diff.replaced[0].changes[0]
    assert change == PropertyChange("BucketName", "old-name", "new-name", requires_replacement=True)
    assert "BucketName" in diff.replaced[0].reason


def test_bucket_tag_change_updates():
    old = make_template({"Bucket": _bucket(BucketName="b", Tags=[{"Key": "env", "Value": "dev"}])})
    new = make_template({"Bucket": _bucket(BucketName="b", Tags=[{"Key": "env", "Value": "prod"}])})
    diff = analyze_stack_diff(old, new)
    assert diff.replaced == []
    assert [rd.logical_id for rd in diff.updated] == ["Bucket"]
    assert diff.updated[0].changes[0].path == "Tags"
    assert not diff.updated[0].changes[0].requires_replacement


def test_unknown_type_never_forces_replacement():
    old = make_template({"Thing": {"Type": "Custom::Thing", "Properties": {"Name": "a"}}})
    new = make_template({"Thing": {"Type": "Custom::Thing", "Properties": {"Name": "b"}}})
    diff = analyze_stack_diff(old, new)
    assert [rd.logical_id for rd in diff.updated] == ["Thing"]


def test_custom_policy_forces_replacement():
    policy = ReplacementPolicy().with_overrides({"Custom::Thing": ["Name"]})
    old = make_template({"Thing": {"Type": "Custom::Thing", "Properties": {"Name": "a"}}})
    new = make_template({"Thing": {"Type": "Custom::Thing", "Properties": {"Name": "b"}}})
    diff = analyze_stack_diff(old, new, policy=policy)
    assert [rd.logical_id for rd in diff.replaced] == ["Thing"]


def test_compare_properties_nested_paths():
    old = {"Config": {"Timeout": 30, "Memory": {"Size": 128}}, "Gone": 1}
    new = {"Config": {"Timeout": 60, "Memory": {"Size": 128}}, "New": "x"}
    changes = compare_properties(old, new)
    assert changes == [
        PropertyChange("Config.Timeout", 30, 60),
        PropertyChange("Gone", 1, None),
        PropertyChange("New", None, "x"),
    ]


def test_compare_properties_kind_mismatch_does_not_recurse():
    changes = compare_properties({"A": {"B": 1}}, {"A": "flat"})
    assert changes == [PropertyChange("A", {"B": 1}, "flat")]


def test_compare_properties_bool_and_number_differ():
    assert compare_properties({"A": True}, {"A": 1}) == [PropertyChange("A", True, 1)]


def test_compare_properties_lists_are_whole_values():
    old = {"Ports": [80, 443, 8080]}
    new = {"Ports": [80, 443, 8443]}
    assert compare_properties(old, new) == [PropertyChange("Ports", [80, 443, 8080], [80, 443, 8443])]
    assert compare_properties(old, {"Ports": [80, 443, 8080]}) == []


def test_compare_properties_null_against_mapping():
    assert compare_properties({"A": None}, {"A": {"B": 1}}) == [PropertyChange("A", None, {"B": 1})]
    assert compare_properties({"A": {"B": 1}}, {"A": None}) == [PropertyChange("A", {"B": 1}, None)]


def test_compare_properties_list_against_mapping():
    assert compare_properties({"A": [1]}, {"A": {"B": 1}}) == [PropertyChange("A", [1], {"B": 1})]


def test_compare_properties_lists_with_mixed_key_types():
    old = {"L": [{1: "a", "b": 2}]}
    new = {"L": [{1: "a", "b": 3}]}
    assert compare_properties(old, new) == [PropertyChange("L", old["L"], new["L"])]
    assert compare_properties(old, {"L": [{"b": 2, 1: "a"}]}) == []


def test_malformed_resources_do_not_raise():
    old = make_template({"A": "junk", "B": {"Type": "AWS::SNS::Topic", "Properties": "odd"}})
    new = make_template({"A": "junk", "B": {"Type": "AWS::SNS::Topic", "Properties": "odder"}})
    diff = analyze_stack_diff(old, new)
    assert diff.unchanged == ["A"]
    assert [rd.logical_id for rd in diff.updated] == ["B"]


def test_missing_resources_section():
    diff = analyze_stack_diff({}, make_template({"A": {"Type": "AWS::SNS::Topic"}}))
    assert [rd.logical_id for rd in diff.added] == ["A"]


def test_parameter_and_output_changes_are_flagged():
    old = make_template(Parameters={"Env": {"Type": "String"}})
    new = make_template(Parameters={"Env": {"Type": "String", "Default": "dev"}}, Outputs={})
    diff = analyze_stack_diff(old, new)
    assert diff.parameters_changed
    assert not diff.outputs_changed


def test_mixed_key_types_in_parameters_and_outputs():
    old = make_template(Parameters={"Env": {"Type": "String", 1: "x"}}, Outputs={"Id": {"Value": "q", 2: "y"}})
    new = make_template(Parameters={"Env": {"Type": "String", 1: "z"}}, Outputs={"Id": {"Value": "q", 2: "y"}})
    diff = analyze_stack_diff(old, new)
    assert diff.parameters_changed
    assert not diff.outputs_changed


def test_dangerous_changes():
    old = make_template(
        {
            "Db": {"Type": "AWS::RDS::DBInstance", "Properties": {"Engine": "mysql"}},
            "Cache": {"Type": "AWS::ElastiCache::CacheCluster"},
            "Bucket": _bucket(BucketName="a"),
            "Server": {"Type": "AWS::EC2::Instance", "Properties": {"ImageId": "ami-1"}},
            "Sg": {"Type": "AWS::EC2::SecurityGroup", "Properties": {"GroupDescription": "a"}},
            "Role": {"Type": "AWS::IAM::Role", "Properties": {"MaxSessionDuration": 3600}},
        }
    )
    new = make_template(
        {
            "Db": {"Type": "AWS::RDS::DBInstance", "Properties": {"Engine": "postgres"}},
            "Server": {"Type": "AWS::EC2::Instance", "Properties": {"ImageId": "ami-2"}},
            "Sg": {"Type": "AWS::EC2::SecurityGroup", "Properties": {"GroupDescription": "b"}},
            "Role": {"Type": "AWS::IAM::Role", "Properties": {"MaxSessionDuration": 7200}},
        }
    )
    diff = analyze_stack_diff(old, new)
    assert diff.summary.dangerous_changes == [
        "Removing AWS::ElastiCache::CacheCluster Cache - data loss risk!",
        "Removing S3 bucket Bucket - data loss risk!",
        "Replacing AWS::RDS::DBInstance Db - data loss risk!",
        "Replacing EC2 instance Server - downtime expected",
        "Updating security group Sg - may affect connectivity",
        "Modifying IAM Role Role - may affect permissions",
    ]
    assert diff.summary.total_changes == 6


def test_adding_resources_is_never_dangerous():
    diffs = [ResourceDiff("Db", DiffAction.ADD, "AWS::RDS::DBInstance")]
    assert identify_dangerous_changes(diffs) == []


def test_replacing_iam_policy_is_dangerous():
    diffs = [ResourceDiff("Pol", DiffAction.REPLACE, "AWS::IAM::Policy", reason="x")]
    assert identify_dangerous_changes(diffs) == ["Modifying IAM Policy Pol - may affect permissions"]

"""Tests for the template value AST."""

from stackguard.nodes import (
    AttrRef,
    DirectRef,
    ListNode,
    MapNode,
    Scalar,
    iter_references,
    parse_value,
)


def test_parse_ref():
    assert parse_value({"Ref": "Bucket"}) == DirectRef("Bucket")


def test_parse_get_att_list_form():
    assert parse_value({"Fn::GetAtt": ["Db", "Endpoint.Address"]}) == AttrRef(
        "Db", "Endpoint.Address"
    )


def test_parse_get_att_string_form():
    assert parse_value({"Fn::GetAtt": "Db.Endpoint.Address"}) == AttrRef(
        "Db", "Endpoint.Address"
    )


def test_mapping_with_extra_keys_is_not_a_reference():
    node = parse_value({"Ref": "Bucket", "Other": 1})
    assert isinstance(node, MapNode)


def test_scalars_and_lists():
    node = parse_value([1, "a", None])
    assert node == ListNode((Scalar(1), Scalar("a"), Scalar(None)))


def test_iter_references_reports_paths():
    value = {
        "BucketName": {"Ref": "NameParam"},
        "Tags": [
            {"Key": "owner", "Value": "me"},
            {"Key": "db", "Value": {"Fn::GetAtt": ["Db", "Arn"]}},
        ],
    }
    refs = list(iter_references(parse_value(value), "Resources.B.Properties"))
    assert refs == [
        ("Resources.B.Properties.BucketName", DirectRef("NameParam")),
        ("Resources.B.Properties.Tags.1.Value", AttrRef("Db", "Arn")),
    ]


def test_iter_references_on_scalar_yields_nothing():
    assert list(iter_references(parse_value("plain"), "x")) == []

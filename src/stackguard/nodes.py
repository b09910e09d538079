"""Typed view of CloudFormation property values.

Property values arrive as plain nested ``dict``/``list``/scalar trees and are
parsed once into a small tagged union in which ``Ref`` and ``Fn::GetAtt``
mappings become explicit reference nodes.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

PSEUDO_PARAMETERS: frozenset[str] = frozenset(
    {
        "AWS::AccountId",
        "AWS::NotificationARNs",
        "AWS::NoValue",
        "AWS::Partition",
        "AWS::Region",
        "AWS::StackId",
        "AWS::StackName",
        "AWS::URLSuffix",
    }
)


@dataclass(frozen=True)
class Scalar:
    value: Any


@dataclass(frozen=True)
class ListNode:
    items: tuple["Node", ...]


@dataclass(frozen=True)
class MapNode:
    entries: dict[str, "Node"]


@dataclass(frozen=True)
class DirectRef:
    """``{"Ref": target}``: a resource, parameter or pseudo parameter."""

    target: str


@dataclass(frozen=True)
class AttrRef:
    """``{"Fn::GetAtt": [target, attribute]}``: a runtime attribute of a resource."""

    target: str
    attribute: str


Node = Scalar | ListNode | MapNode | DirectRef | AttrRef
Reference = DirectRef | AttrRef


def _parse_get_att(value: Any) -> AttrRef | None:
    if isinstance(value, str):
        target, _, attribute = value.partition(".")
        return AttrRef(target=target, attribute=attribute) if target else None
    if isinstance(value, list) and value and isinstance(value[0], str):
        attribute = value[1] if len(value) > 1 and isinstance(value[1], str) else ""
        return AttrRef(target=value[0], attribute=attribute)
    return None


def parse_value(value: Any) -> Node:
    """Parse a raw template value into a Node tree."""
    if isinstance(value, dict):
        if len(value) == 1:
            if isinstance(value.get("Ref"), str):
                return DirectRef(target=value["Ref"])
            if "Fn::GetAtt" in value:
                ref = _parse_get_att(value["Fn::GetAtt"])
                if ref is not None:
                    return ref
        return MapNode(entries={str(k): parse_value(v) for k, v in value.items()})
    if isinstance(value, list):
        return ListNode(items=tuple(parse_value(item) for item in value))
    return Scalar(value=value)


def iter_references(node: Node, path: str) -> Iterator[tuple[str, Reference]]:
    """Yield ``(path, reference)`` for every reference node under ``node``.

    List positions are path segments, so a reference inside the second entry
    of ``Tags`` is reported at ``<path>.Tags.1.Value``.
    """
    match node:
        case DirectRef() | AttrRef():
            yield path, node
        case MapNode(entries=entries):
            for key, child in entries.items():
                yield from iter_references(child, f"{path}.{key}")
        case ListNode(items=items):
            for index, child in enumerate(items):
                yield from iter_references(child, f"{path}.{index}")

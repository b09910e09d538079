"""Read CloudFormation templates from JSON or YAML."""

import json
from pathlib import Path
from typing import Any

import yaml


class TemplateLoadError(Exception):
    """A template could not be read or is not a mapping."""


class CloudFormationLoader(yaml.SafeLoader):
    """SafeLoader that expands short-form intrinsics (``!Ref``, ``!GetAtt``, ...)."""


# CloudFormation reads unquoted dates such as 2010-09-09 as strings
CloudFormationLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _construct_intrinsic(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        value = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)

    if tag_suffix == "Ref":
        return {"Ref": value}
    if tag_suffix == "Condition":
        return {"Condition": value}
    if tag_suffix == "GetAtt" and isinstance(value, str):
        target, _, attribute = value.partition(".")
        return {"Fn::GetAtt": [target, attribute]}
    return {f"Fn::{tag_suffix}": value}


CloudFormationLoader.add_multi_constructor("!", _construct_intrinsic)


def parse_template_body(body: str) -> dict[str, Any]:
    """Parse a template body. JSON bodies start with ``{``; anything else is YAML."""
    try:
        if body.lstrip().startswith("{"):
            template = json.loads(body)
        else:
            template = yaml.load(body, Loader=CloudFormationLoader)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise TemplateLoadError(f"Could not parse template: {exc}") from exc

    if not isinstance(template, dict):
        raise TemplateLoadError("Template must be a mapping at the top level")
    return template


def load_template(path: str | Path) -> tuple[dict[str, Any], str]:
    """Load a template file. Returns the parsed template and its raw body."""
    path = Path(path)
    try:
        body = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateLoadError(f"Could not read {path}: {exc}") from exc
    return parse_template_body(body), body

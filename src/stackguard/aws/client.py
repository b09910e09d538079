"""Thin boto3 wrapper for fetching deployed CloudFormation templates."""

from typing import Any

import boto3
from botocore.exceptions import ClientError

from stackguard.loader import parse_template_body


class StackNotFoundError(Exception):
    """The requested stack does not exist in the target account and region."""


class CloudFormationClient:
    """Wraps boto3 CloudFormation calls and returns templates as plain mappings."""

    def __init__(self, region: str | None = None):
        self._client = boto3.client("cloudformation", **({"region_name": region} if region else {}))

    def get_template(self, stack_name: str, stage: str = "Original") -> dict[str, Any]:
        """Fetch the template of a deployed stack.

        boto3 hands back JSON templates already decoded and YAML templates as a
        string, so both shapes are accepted.
        """
        try:
            resp = self._client.get_template(StackName=stack_name, TemplateStage=stage)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            if error.get("Code") == "ValidationError" and "does not exist" in error.get(
                "Message", ""
            ):
                raise StackNotFoundError(f"Stack {stack_name!r} does not exist") from exc
            raise

        body = resp["TemplateBody"]
        if isinstance(body, dict):
            return dict(body)
        return parse_template_body(body)

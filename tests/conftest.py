"""Shared test fixtures."""

import copy
import json

import pytest

BASE_TEMPLATE = {
    "AWSTemplateFormatVersion": "2010-09-09",
    "Description": "Test stack",
    "Resources": {
        "Queue": {
            "Type": "AWS::SQS::Queue",
            "Properties": {
                "QueueName": "orders",
                "Tags": [{"Key": "team", "Value": "platform"}],
            },
        },
    },
}

SIMPLE_TEMPLATE = json.dumps(BASE_TEMPLATE)


def make_template(resources=None, **sections):
    """Build a valid template, replacing Resources and adding extra sections."""
    template = copy.deepcopy(BASE_TEMPLATE)
    if resources is not None:
        template["Resources"] = resources
    template.update(sections)
    return template


@pytest.fixture
def aws_credentials(monkeypatch):
    """Set dummy AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def template():
    return make_template()


@pytest.fixture
def write_template(tmp_path):
    """Write a template mapping (or raw body) to a file and return its path."""

    def _write(content, name="template.json"):
        path = tmp_path / name
        path.write_text(content if isinstance(content, str) else json.dumps(content))
        return str(path)

    return _write

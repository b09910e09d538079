"""CLI entrypoint for stackguard."""

import logging
import os
import sys

import click
from botocore.exceptions import BotoCoreError, ClientError
from rich.logging import RichHandler

from stackguard.aws.client import CloudFormationClient, StackNotFoundError
from stackguard.config import POLICY_FILE_ENVVAR, PolicyConfigError, load_policy
from stackguard.differ import analyze_stack_diff
from stackguard.formatter import (
    format_diff_json,
    format_diff_markdown,
    format_diff_table,
    format_diff_text,
    format_validation_json,
    format_validation_table,
)
from stackguard.integrations.github import post_to_github_pr
from stackguard.integrations.slack import post_to_slack
from stackguard.loader import TemplateLoadError, load_template
from stackguard.models import combine_results
from stackguard.validator import (
    validate_resource_limits,
    validate_template,
    validate_template_size,
)

logger = logging.getLogger(__name__)


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(2)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr.")
def main(verbose):
    """Validate CloudFormation templates and analyze stack updates."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(show_path=False)],
        )


@main.command()
@click.argument("template_path", type=click.Path(dir_okay=False))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
@click.option("--strict", is_flag=True, help="Treat warnings as failures.")
def validate(template_path, output_format, strict):
    """Validate a template's structure, references and best practices."""
    try:
        template, body = load_template(template_path)
    except TemplateLoadError as exc:
        _fail(str(exc))

    result = combine_results(
        validate_template(template),
        validate_template_size(body),
        validate_resource_limits(template),
    )

    formatters = {
        "table": format_validation_table,
        "json": format_validation_json,
    }
    click.echo(formatters[output_format](result))

    failed = not result.valid or (strict and bool(result.warnings))
    sys.exit(1 if failed else 0)


@main.command()
@click.argument("new_template", type=click.Path(dir_okay=False))
@click.option("--old", "old_template", type=click.Path(dir_okay=False), default=None,
              help="Template currently deployed, read from a file.")
@click.option("--stack", default=None, help="Fetch the deployed template from this stack.")
@click.option("--region", default=None, help="AWS region.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "table", "json", "markdown"]),
    default="text",
    help="Output format.",
)
@click.option("--policy-file", type=click.Path(dir_okay=False), envvar=POLICY_FILE_ENVVAR,
              default=None, help="Replacement policy overrides (YAML or JSON).")
@click.option("--allow-dangerous", is_flag=True, help="Exit 0 even when dangerous changes exist.")
@click.option("--redact-values", is_flag=True, help="Hide property values in output.")
@click.option("--post-slack", is_flag=True, help="Post report to Slack webhook.")
@click.option("--post-github-pr", type=click.IntRange(min=1), default=None,
              help="Post report as GitHub PR comment.")
def diff(
    new_template,
    old_template,
    stack,
    region,
    output_format,
    policy_file,
    allow_dangerous,
    redact_values,
    post_slack,
    post_github_pr,
):
    """Compare the deployed template with NEW_TEMPLATE."""
    if bool(old_template) == bool(stack):
        _fail("Provide exactly one of --old or --stack.")

    try:
        policy = load_policy(policy_file)
        new, _ = load_template(new_template)
        if old_template:
            old, _ = load_template(old_template)
        else:
            old = CloudFormationClient(region=region).get_template(stack)
    except (TemplateLoadError, PolicyConfigError, StackNotFoundError) as exc:
        _fail(str(exc))
    except (BotoCoreError, ClientError) as exc:
        logger.exception("Failed to fetch template for stack %s", stack)
        _fail(f"could not fetch template for stack {stack!r}: {exc}")

    stack_diff = analyze_stack_diff(old, new, policy=policy)

    formatters = {
        "text": format_diff_text,
        "table": format_diff_table,
        "json": format_diff_json,
        "markdown": format_diff_markdown,
    }
    click.echo(formatters[output_format](stack_diff, redact=redact_values))

    if post_slack:
        webhook_url = os.environ.get("STACKGUARD_SLACK_WEBHOOK")
        if not webhook_url:
            _fail("STACKGUARD_SLACK_WEBHOOK env var not set.")
        post_to_slack(report=format_diff_text(stack_diff, redact=redact_values), webhook_url=webhook_url)

    if post_github_pr is not None:
        token = os.environ.get("GITHUB_TOKEN")
        repo = os.environ.get("GITHUB_REPO")
        if not token or not repo:
            _fail("GITHUB_TOKEN and GITHUB_REPO env vars required.")
        md_output = format_diff_markdown(stack_diff, redact=redact_values)
        post_to_github_pr(body=md_output, repo=repo, pr_number=post_github_pr, token=token)

    if stack_diff.summary.dangerous_changes and not allow_dangerous:
        click.echo(
            f"Refusing to proceed: {len(stack_diff.summary.dangerous_changes)} dangerous "
            "change(s). Pass --allow-dangerous to override.",
            err=True,
        )
        sys.exit(1)
    sys.exit(0)

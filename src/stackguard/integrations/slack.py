"""Post stack diff reports to Slack via incoming webhook."""

from urllib.parse import urlparse

import requests

ALLOWED_SLACK_HOSTS = {"hooks.slack.com", "hooks.slack-gov.com"}

# Slack rejects section text longer than this
MAX_SECTION_LENGTH = 3000
TRUNCATION_SUFFIX = "\n..."
CODE_FENCE = "```"


def post_to_slack(report: str, webhook_url: str, title: str = "Stack diff", timeout: int = 30) -> None:
    """Post a report to a Slack incoming webhook as a header plus a code block."""
    parsed = urlparse(webhook_url)
    if parsed.scheme != "https":
        raise ValueError("Slack webhook URL must use HTTPS")
    if parsed.hostname not in ALLOWED_SLACK_HOSTS:
        raise ValueError(
            f"Invalid Slack webhook host {parsed.hostname!r}: "
            f"must be one of {sorted(ALLOWED_SLACK_HOSTS)}"
        )

    limit = MAX_SECTION_LENGTH - 2 * len(CODE_FENCE)
    body = report
    if len(body) > limit:
        body = body[: limit - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX

    response = requests.post(
        webhook_url,
        json={
            "text": f"{title}\n{report}",
            "blocks": [
                {"type": "header", "text": {"type": "plain_text", "text": title}},
                {"type": "section", "text": {"type": "mrkdwn", "text": f"{CODE_FENCE}{body}{CODE_FENCE}"}},
            ],
        },
        timeout=timeout,
    )
    response.raise_for_status()

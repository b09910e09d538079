"""Post stack diff reports as GitHub PR comments."""

import re

import requests

REPO_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$")

COMMENT_HEADER = "<!-- stackguard -->"


def post_to_github_pr(
    body: str,
    repo: str,
    pr_number: int,
    token: str,
    timeout: int = 30,
) -> None:
    """Post a Markdown report as a comment on a GitHub pull request.

    The comment starts with a hidden marker so reviewers and bots can tell
    stackguard comments apart from human ones.
    """
    if not REPO_PATTERN.match(repo):
        raise ValueError(f"Invalid GitHub repo format: {repo!r} (expected 'owner/repo')")
    if pr_number < 1:
        raise ValueError(f"Invalid pull request number: {pr_number}")

    response = requests.post(
        f"https://api.github.com/repos/{repo}/issues/{pr_number}/comments",
        json={"body": f"{COMMENT_HEADER}\n{body}"},
        headers={
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        },
        timeout=timeout,
    )
    response.raise_for_status()

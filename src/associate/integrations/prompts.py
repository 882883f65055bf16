"""Default worker prompt for an issue picked from a tracker tab."""

from __future__ import annotations

from .base import NormalizedIssue

PROMPT_TEMPLATE = """You are implementing a feature/fix based on the following ticket.

## Ticket Information
- Source: {source}
- Key: {key}
- Title: {title}
- Labels: {labels}
- URL: {url}
{extra}

## Description
{description}

## Instructions

Please complete this ticket by following these steps:

1. **Planning Phase**: Analyze the ticket requirements thoroughly. Read relevant code in the codebase to understand the current architecture. Create a detailed implementation plan.

2. **Implementation Phase**: Implement the changes described in the ticket. Follow existing code patterns and conventions. Write clean, well-structured code.

3. **Testing Phase**: Run the existing test suite and ensure all tests pass. If the changes warrant new tests, write them. Fix any test failures.

4. **Quality Check**: Run linters and formatters. Fix any warnings or errors. Ensure the code meets project standards.

5. **PR Creation**: Create a new git branch for this work. Commit all changes with clear, descriptive commit messages. Push the branch and create a pull request with a summary of the changes.

Use team and subagent capabilities to run tasks in parallel where possible.

Do not ask for user input. Work autonomously to completion."""


def build_prompt(issue: NormalizedIssue) -> str:
    details = [(name, value) for name, value in issue.extra.items() if value]
    if issue.author:
        details.append(("Author", issue.author))
    if issue.assignees:
        details.append(("Assignees", ", ".join(issue.assignees)))
    extra = ""
    if details:
        extra = "\n## Additional Details\n" + "\n".join(f"- {name}: {value}" for name, value in details)
    return PROMPT_TEMPLATE.format(
        source=issue.source,
        key=issue.key,
        title=issue.title,
        labels=", ".join(issue.labels) or "None",
        url=issue.url,
        extra=extra,
        description=issue.body or "No description provided.",
    )


def worker_label(issue: NormalizedIssue) -> str:
    return f"{issue.source} {issue.key}"


__all__ = ["PROMPT_TEMPLATE", "build_prompt", "worker_label"]

"""Tag validation.

A single, side-effect free validator shared by configuration-time checks
(CLI, HTTP API, StepConfig) and by the run itself, which drops expanded
tags that no longer match.

Configured entries are templates and may contain macro references such as
``${BUILD_NUMBER}``. A template is accepted when it matches the grammar
with each macro reference standing in for a valid fragment. Expanded tags
must match the grammar literally.
"""

import re

from docker_build_step.errors import TagValidationError
from docker_build_step.types import OperationResult

TAG_PATTERN = re.compile(r"^[a-z0-9\-_.]+$")

MACRO_PATTERN = re.compile(
    r"\$\$"
    r"|\$\{ENV,\s*var=\"(?P<env>[^\"]+)\"\}"
    r"|\$\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}"
    r"|\$(?P<bare>[A-Za-z_][A-Za-z0-9_]*)"
)


def parse_tags_string(tags_string: str | None) -> list[str]:
    """Split newline-delimited tag text into a list.

    Entries are trimmed and blank lines are omitted.

    Args:
        tags_string: Raw text as entered in the step configuration.

    Returns:
        Tag templates in the order they were written.
    """
    if not tags_string:
        return []
    tags = []
    for line in tags_string.split("\n"):
        stripped = line.strip()
        if stripped:
            tags.append(stripped)
    return tags


def join_tags(tags: list[str] | None) -> str:
    """Join tags back into newline-delimited text."""
    return "\n".join(tags) if tags else ""


def is_valid_tag(tag: str) -> bool:
    """Check a literal tag against the naming grammar."""
    return TAG_PATTERN.match(tag) is not None


def validate_tag(tag: str) -> None:
    """Validate a single literal tag.

    Args:
        tag: Candidate tag string.

    Raises:
        TagValidationError: If the tag does not match the grammar.
    """
    if not is_valid_tag(tag):
        raise TagValidationError(tag, TAG_PATTERN.pattern)


def validate_template(template: str) -> None:
    """Validate a tag template.

    Raises:
        TagValidationError: If the template cannot produce a valid tag.
    """
    masked = MACRO_PATTERN.sub("x", template)
    if not is_valid_tag(masked):
        raise TagValidationError(template, TAG_PATTERN.pattern)


def verify_tags(tags_string: str | None) -> list[str]:
    """Parse and validate newline-delimited tag template text.

    Args:
        tags_string: Raw tag text.

    Returns:
        The parsed templates.

    Raises:
        TagValidationError: Naming the first offending entry.
    """
    tags = parse_tags_string(tags_string)
    for tag in tags:
        validate_template(tag)
    return tags


def check_tags_string(tags_string: str | None) -> OperationResult:
    """Configuration-time check of tag text.

    Args:
        tags_string: Raw tag text.

    Returns:
        OperationResult; on failure ``details["offending_tag"]`` names the
        first entry that does not match.
    """
    try:
        tags = verify_tags(tags_string)
    except TagValidationError as e:
        return OperationResult(
            success=False,
            message=str(e),
            code=e.code,
            details={"offending_tag": e.tag},
        )
    return OperationResult(
        success=True,
        message=f"{len(tags)} tag(s) OK",
        details={"tags": tags},
    )


__all__ = [
    "MACRO_PATTERN",
    "TAG_PATTERN",
    "check_tags_string",
    "is_valid_tag",
    "join_tags",
    "parse_tags_string",
    "validate_tag",
    "validate_template",
    "verify_tags",
]

"""Configuration-time validation endpoints.

- POST /validation/tags - Check newline-delimited tag templates
"""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from docker_build_step.tags.validator import check_tags_string

router = APIRouter()


class TagsCheckRequest(BaseModel):
    """Request body for a tag check."""

    tags: str | None = None


@router.post("/tags")
def check_tags_endpoint(request: TagsCheckRequest) -> dict[str, Any]:
    """Check tag templates the way the step configuration does.

    Always answers 200; ``ok`` tells whether the text is acceptable.
    """
    result = check_tags_string(request.tags)
    return {
        "ok": result.success,
        "message": result.message,
        "offending_tag": result.details.get("offending_tag"),
    }

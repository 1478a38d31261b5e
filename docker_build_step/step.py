"""Build step configuration.

StepConfig is the configuration a pipeline stores for one build step. Tag
templates are checked with the shared tag validator when the model is
constructed, so bad input is rejected before a run is ever started.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from docker_build_step.tags.validator import (
    join_tags,
    parse_tags_string,
    validate_template,
)


class StepConfig(BaseModel):
    """Configuration of a build / publish step.

    Attributes:
        context_dir: Build context directory, relative to the workspace.
        tags: Tag templates in build and push order.
        publish_on_success: Push every tag after a successful build.
        clean_local_images: Remove the built image when the run finishes.
        clean_on_job_delete: Remove the built image when the job is deleted.
    """

    model_config = ConfigDict(extra="forbid")

    context_dir: str = Field(default=".", description="Build context directory")
    tags: list[str] = Field(default_factory=list, description="Tag templates")
    publish_on_success: bool = Field(default=False)
    clean_local_images: bool = Field(default=False)
    clean_on_job_delete: bool = Field(default=False)

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_tag(cls, data: Any) -> Any:
        """Accept the deprecated single ``tag`` field."""
        if isinstance(data, dict) and "tag" in data:
            data = dict(data)
            legacy = data.pop("tag")
            if legacy and not data.get("tags"):
                data["tags"] = [legacy]
        return data

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        """Validate every template against the tag grammar."""
        tags = [t.strip() for t in v if t.strip()]
        for tag in tags:
            validate_template(tag)
        return tags

    @classmethod
    def from_tags_string(cls, tags_string: str | None, **kwargs: Any) -> "StepConfig":
        """Create a config from newline-delimited tag text."""
        return cls(tags=parse_tags_string(tags_string), **kwargs)

    @property
    def tags_string(self) -> str:
        """Tags as newline-delimited text."""
        return join_tags(self.tags)


__all__ = ["StepConfig"]

"""Tag handling module.

This module handles:
- Validating tags against the naming grammar
- Parsing newline-delimited tag text from step configuration
- Macro-expanding tag templates against a build context
"""

from docker_build_step.tags.expander import BuildContext, expand_tags
from docker_build_step.tags.validator import TAG_PATTERN, validate_tag, verify_tags

__all__ = ["TAG_PATTERN", "BuildContext", "expand_tags", "validate_tag", "verify_tags"]

"""Tag template expansion.

Tag templates may reference build variables, e.g. ``myapp-${BUILD_NUMBER}``.
Expansion is delegated to a MacroExpander; the default TokenMacroExpander
understands ``$NAME``, ``${NAME}``, ``${ENV,var="NAME"}`` and ``$$``.

A template that fails to expand, or expands to something outside the tag
grammar, is dropped with a diagnostic line. This is never fatal.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from docker_build_step.errors import TagExpansionError
from docker_build_step.tags.validator import MACRO_PATTERN, TAG_PATTERN, is_valid_tag

if TYPE_CHECKING:
    from docker_build_step.engine.logsink import LogSink

logger = logging.getLogger(__name__)


@dataclass
class BuildContext:
    """Variables available to tag templates for one run.

    Attributes:
        job_name: Name of the job the step belongs to.
        run_number: Sequential number of the run within the job.
        node_name: Execution node the run happened on.
        workspace: Workspace directory of the run.
        env: Additional build variables (parameters, environment).
    """

    job_name: str
    run_number: int
    node_name: str | None = None
    workspace: str | None = None
    env: dict[str, str] = field(default_factory=dict)

    def variables(self) -> dict[str, str]:
        """Return all variables, built-ins taking precedence over env."""
        values = dict(self.env)
        values["JOB_NAME"] = self.job_name
        values["BUILD_NUMBER"] = str(self.run_number)
        values["BUILD_ID"] = str(self.run_number)
        if self.node_name is not None:
            values["NODE_NAME"] = self.node_name
        if self.workspace is not None:
            values["WORKSPACE"] = self.workspace
        return values


class MacroExpander(Protocol):
    """Macro expansion service."""

    def expand(self, template: str, context: BuildContext) -> str:
        """Expand a template.

        Raises:
            TagExpansionError: If the template cannot be expanded.
        """
        ...


class TokenMacroExpander:
    """Default expander for ``$VAR`` style tokens."""

    def expand(self, template: str, context: BuildContext) -> str:
        variables = context.variables()

        def _replace(match: re.Match[str]) -> str:
            if match.group(0) == "$$":
                return "$"
            name = match.group("env") or match.group("braced") or match.group("bare")
            if name not in variables:
                raise TagExpansionError(template, f"unknown variable {name}")
            return variables[name]

        expanded = MACRO_PATTERN.sub(_replace, template)
        if "${" in MACRO_PATTERN.sub("", template):
            raise TagExpansionError(template, "unterminated or unsupported macro")
        return expanded


def expand_tags(
    templates: Iterable[str],
    context: BuildContext,
    sink: LogSink,
    expander: MacroExpander | None = None,
) -> list[str]:
    """Expand tag templates into literal tags.

    Args:
        templates: Tag templates in configured order.
        context: Build context providing variables.
        sink: Run log sink for per-template diagnostics.
        expander: Macro expansion service (TokenMacroExpander by default).

    Returns:
        Expanded tags in template order, minus dropped entries. May be empty.
    """
    if expander is None:
        expander = TokenMacroExpander()

    tags: list[str] = []
    for template in templates:
        try:
            tag = expander.expand(template, context)
        except TagExpansionError as e:
            logger.warning("Dropping tag template %r: %s", template, e)
            sink.append(f"Couldn't macro expand tag {template}")
            continue

        if not is_valid_tag(tag):
            logger.warning("Dropping expanded tag %r (from %r)", tag, template)
            sink.append(
                f"Expanded tag {tag} (from {template}) doesn't match "
                f"{TAG_PATTERN.pattern}, skipping"
            )
            continue

        tags.append(tag)
    return tags


__all__ = ["BuildContext", "MacroExpander", "TokenMacroExpander", "expand_tags"]

"""
Template renderer: renders one file with python-liquid against ResolvedParameters.

Rules:
- The only variable scope is the parameter map (plus loop variables)
- No filesystem, network or call syntax is reachable from a template
- Undefined variables render as "" and produce a warning (RenderError if strict)
- Output size, loop iterations and nesting depth are bounded per file
- Every library error is re-raised as RenderError with file, line, column and suggestion
- Rendering never mutates its inputs; the same inputs give byte-identical output
"""

import difflib
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from liquid import BoundTemplate, RenderContext
from liquid.ast import Node
from liquid.exceptions import (
    BlockNestingError,
    FilterArgumentError,
    FilterError,
    FilterValueError,
    LiquidError,
    LiquidSyntaxError,
    LiquidTypeError,
    LoopIterationLimitError,
    OutputStreamLimitError,
    UndefinedError,
    UnknownFilterError,
)
from liquid.expression import Expression
from liquid.output import LimitedStringIO

from scaffoldkit.config import EngineConfig
from scaffoldkit.domain.errors import ErrorCodes, RenderError
from scaffoldkit.domain.schemas import RenderWarning
from scaffoldkit.render.environment import (
    SUPPORTED_TAGS,
    ScaffoldContext,
    ScaffoldEnvironment,
    UnbalancedBlockError,
    UnknownTagError,
    token_location,
)
from scaffoldkit.render.filters import FILTERS

logger = logging.getLogger(__name__)

_UNCLOSED_BLOCK = re.compile(r"expected \S+ end\w+, found|was never closed")


@dataclass
class RenderOutput:
    """Rendered text plus non-fatal diagnostics."""
    text: str
    warnings: list[RenderWarning] = field(default_factory=list)


class TemplateRenderer:
    """
    Restricted template renderer.

    Usage:
        renderer = TemplateRenderer(config)
        output = renderer.render("Hello {{ project_name | upcase }}", params, filename="README.md")
        output.text, output.warnings
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self.env = ScaffoldEnvironment(self.config)

    def compile(self, source: str, filename: str = "<template>") -> BoundTemplate:
        """
        Parse template source and check every filter call site.

        Raises:
            RenderError: syntax errors (file, line, column)
        """
        try:
            template = self.env.from_string(source, name=filename)
            check_filters(template)
        except LiquidError as e:
            raise to_render_error(e, filename) from e
        return template

    def render(
        self,
        source: str,
        parameters: Mapping[str, Any],
        filename: str = "<template>",
    ) -> RenderOutput:
        """
        Compile and render one file.

        Args:
            source: template text
            parameters: variable scope (never mutated)
            filename: used in diagnostics

        Returns:
            RenderOutput(text, warnings)

        Raises:
            RenderError: syntax error, strict undefined variable, filter failure, budget exceeded
        """
        return self.render_template(self.compile(source, filename), parameters)

    def render_template(self, template: BoundTemplate, parameters: Mapping[str, Any]) -> RenderOutput:
        """Render an already-compiled template."""
        context = ScaffoldContext(template, globals=template.make_globals(dict(parameters)))
        buffer = LimitedStringIO(limit=self.config.max_output_bytes)
        try:
            template.render_with_context(context, buffer)
        except LiquidError as e:
            raise to_render_error(e, template.name) from e

        if context.warnings:
            logger.debug("%s rendered with %d warning(s)", template.name, len(context.warnings))
        return RenderOutput(buffer.getvalue(), context.warnings)


# =============================================================================
# Compile-time Checks
# =============================================================================

def check_filters(template: BoundTemplate) -> None:
    """Reject unknown filters and wrong arity, including in branches that never render."""
    static_context = RenderContext(template)

    def visit_expression(expr: Expression) -> None:
        for filter_ in getattr(expr, "filters", None) or ():
            filter_.validate_filter_arguments(template.env)
        for child in expr.children():
            visit_expression(child)

    def visit(node: Node) -> None:
        for expr in node.expressions():
            visit_expression(expr)
        for child in node.children(static_context):
            visit(child)

    for node in template.nodes:
        visit(node)


# =============================================================================
# Error Mapping
# =============================================================================

def to_render_error(error: LiquidError, filename: str) -> RenderError:
    """Library error → RenderError with 1-based location."""
    code, suggestion = _classify(error)
    line, column = token_location(error.token)
    return RenderError(
        code,
        str(error.message),
        filename=filename,
        line=line,
        column=column,
        suggestion=suggestion,
    )


def _classify(error: LiquidError) -> tuple[str, str | None]:
    name = error.token.value if error.token is not None else ""

    if isinstance(error, UnknownTagError):
        close = difflib.get_close_matches(name, SUPPORTED_TAGS, n=1)
        hint = f"Did you mean '{close[0]}'? " if close else ""
        return ErrorCodes.UNKNOWN_TAG, f"{hint}Supported tags: {', '.join(SUPPORTED_TAGS)}"
    if isinstance(error, UnbalancedBlockError):
        return ErrorCodes.UNBALANCED_BLOCK, "Remove the tag or add the block it belongs to"
    if isinstance(error, UnknownFilterError):
        close = difflib.get_close_matches(name, list(FILTERS), n=1)
        hint = f"Did you mean '{close[0]}'? " if close else ""
        return ErrorCodes.UNKNOWN_FILTER, f"{hint}Available filters: {', '.join(sorted(FILTERS))}"
    if isinstance(error, UndefinedError):
        return ErrorCodes.UNDEFINED_VARIABLE, "Declare it under [parameters] or fix the spelling"
    if isinstance(error, BlockNestingError):
        return ErrorCodes.NESTING_LIMIT, "Flatten nested if/for blocks"
    if isinstance(error, LoopIterationLimitError):
        return ErrorCodes.ITERATION_LIMIT, "Reduce the size of the sequences the template loops over"
    if isinstance(error, OutputStreamLimitError):
        return ErrorCodes.OUTPUT_LIMIT, "Reduce the amount of generated text"
    if isinstance(error, (FilterError, FilterArgumentError, FilterValueError)):
        return ErrorCodes.FILTER_FAILED, "Check the value and arguments passed to the filter"
    if isinstance(error, LiquidTypeError):
        return ErrorCodes.TEMPLATE_TYPE, "Compare and loop over values of matching types"
    if isinstance(error, LiquidSyntaxError) and _UNCLOSED_BLOCK.search(str(error.message)):
        return ErrorCodes.UNBALANCED_BLOCK, "Close every if/unless/for/raw/comment block"
    return ErrorCodes.TEMPLATE_SYNTAX, None

"""
Restricted liquid environment.

Rules:
- Only if/unless/for/raw/comment tags and the scaffoldkit filter registry are registered
- Any other tag name is a syntax error (UnknownTagError / UnbalancedBlockError)
- Block nesting, loop iterations and output size are bounded by EngineConfig
- Loop iterations are counted cumulatively across the whole render, nested loops included
- Undefined variable lookups are recorded as warnings on the render context
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional

from liquid import BoundTemplate, Environment, Mode, RenderContext, Undefined
from liquid.ast import Node
from liquid.builtin.content import Literal
from liquid.builtin.expressions import LoopExpression
from liquid.builtin.output import Output
from liquid.builtin.tags.comment_tag import CommentTag
from liquid.builtin.tags.for_tag import ENDFORBLOCK, ENDFORELSEBLOCK, TAG_ELSE, TAG_ENDFOR, ForTag
from liquid.builtin.tags.if_tag import IfTag
from liquid.builtin.tags.unless_tag import UnlessTag
from liquid.exceptions import LiquidSyntaxError, LoopIterationLimitError, UndefinedError
from liquid.parser import get_parser
from liquid.stream import TokenStream
from liquid.tag import Tag
from liquid.token import TOKEN_EXPRESSION, TOKEN_ILLEGAL, TOKEN_TAG, Token
from liquid.undefined import UNDEFINED
from liquid.utils import ReadOnlyChainMap

from scaffoldkit.config import EngineConfig
from scaffoldkit.domain.errors import ErrorCodes
from scaffoldkit.domain.schemas import RenderWarning
from scaffoldkit.render.filters import register_filters

SUPPORTED_TAGS = ("if", "elsif", "else", "endif", "unless", "endunless",
                  "for", "endfor", "raw", "endraw", "comment", "endcomment")

# tags that only make sense closing or continuing an open block
_BLOCK_PARTS = frozenset({"elsif", "else", "endif", "endunless", "endfor",
                          "raw", "endraw", "endcomment"})


class UnknownTagError(LiquidSyntaxError):
    """A tag outside the supported set."""


class UnbalancedBlockError(LiquidSyntaxError):
    """A closing or continuation tag with no matching open block."""


# =============================================================================
# Tags
# =============================================================================

class RestrictedIllegal(Tag):
    """Catch-all for tag names that are not registered."""

    name = TOKEN_ILLEGAL
    block = False

    def parse(self, stream: TokenStream) -> Node:
        token = stream.expect(TOKEN_TAG)
        if stream.peek.kind == TOKEN_EXPRESSION:
            next(stream)

        if not token.value:
            raise LiquidSyntaxError("missing tag name", token=token)
        if token.value in _BLOCK_PARTS:
            raise UnbalancedBlockError(f"unexpected '{token.value}' outside a matching block", token=token)
        raise UnknownTagError(f"unknown tag '{token.value}'", token=token)


class BoundedLoopExpression(LoopExpression):
    """LoopExpression that refuses to materialize a reversed sequence past the iteration budget."""

    __slots__ = ()

    @classmethod
    def from_loop(cls, expr: LoopExpression) -> "BoundedLoopExpression":
        return cls(
            expr.token,
            expr.identifier,
            expr.iterable,
            limit=expr.limit,
            offset=expr.offset,
            reversed_=expr.reversed,
            cols=expr.cols,
        )

    def _slice(self, it, length, context, *, limit, offset):
        start = offset if isinstance(offset, int) else 0
        stop = length if limit is None else min(limit + start, length)
        budget = context.env.loop_iteration_limit
        if self.reversed and budget and stop - min(max(start, 0), length) > budget:
            raise LoopIterationLimitError("loop iteration limit reached", token=None)
        return super()._slice(it, length, context, limit=limit, offset=offset)


class BoundedForTag(ForTag):
    """The for tag, parsed with BoundedLoopExpression."""

    def parse(self, stream: TokenStream) -> Node:
        token = stream.eat(TOKEN_TAG)
        expr = BoundedLoopExpression.from_loop(LoopExpression.parse(self.env, stream.into_inner(tag=token)))

        parse_block = get_parser(self.env).parse_block
        block = parse_block(stream, ENDFORBLOCK)
        default = None

        if stream.current.is_tag(TAG_ELSE):
            next(stream)
            default = parse_block(stream, ENDFORELSEBLOCK)

        stream.expect(TOKEN_TAG, value=TAG_ENDFOR)
        return self.node_class(token, expression=expr, block=block, default=default)


# =============================================================================
# Render Context
# =============================================================================

class ScaffoldContext(RenderContext):
    """RenderContext that records undefined lookups and counts every loop iteration."""

    __slots__ = ("warnings", "iterations", "_warned")

    def __init__(self, template: BoundTemplate, **kwargs: Any) -> None:
        super().__init__(template, **kwargs)
        # parameters only; no clock-backed "now"/"today"
        self.scope = ReadOnlyChainMap(self.locals, self.globals, self.counters)
        self.warnings: list[RenderWarning] = []
        self.iterations = 0
        self._warned: set[tuple[str, int, int]] = set()

    def get(self, path: list[object], *, token: Optional[Token], default: object = UNDEFINED) -> object:
        value = super().get(path, token=token, default=default)
        if isinstance(value, Undefined) and token is not None and token.start_index >= 0:
            self.undefined_lookup(path, token)
        return value

    def undefined_lookup(self, path: list[object], token: Token) -> None:
        subject = format_path(path)
        line, column = token_location(token)
        if self.env.strict_undefined:
            raise UndefinedError(f"undefined variable '{subject}'", token=token)

        key = (subject, line, column)
        if key in self._warned:
            return
        self._warned.add(key)
        self.warnings.append(RenderWarning(
            code=ErrorCodes.UNDEFINED_VARIABLE,
            message=f"undefined variable '{subject}' rendered as empty",
            filename=self.template.name,
            line=line,
            column=column,
            subject=subject,
        ))

    def raise_for_loop_limit(self, length: int = 1) -> None:
        super().raise_for_loop_limit(length)
        self.iterations += length
        if self.env.loop_iteration_limit and self.iterations > self.env.loop_iteration_limit:
            raise LoopIterationLimitError("loop iteration limit reached", token=None)


class ScaffoldTemplate(BoundTemplate):
    context_class = ScaffoldContext

    def make_partial_namespace(self, partial: bool, render_args: Mapping[str, object]) -> Mapping[str, object]:
        # parameters are the only scope; no implicit "partial" variable
        return dict(render_args)


# =============================================================================
# Environment
# =============================================================================

class ScaffoldEnvironment(Environment):
    """
    Liquid environment restricted to the scaffold template language.

    Usage:
        env = ScaffoldEnvironment(config)
        template = env.from_string(source, name="README.md")
    """

    template_class = ScaffoldTemplate
    # keep whitespace-only blocks verbatim
    suppress_blank_control_flow_blocks = False

    def __init__(self, config: EngineConfig) -> None:
        super().__init__(tolerance=Mode.STRICT, undefined=Undefined, strict_filters=True)
        self.strict_undefined = config.strict_undefined
        self.block_nesting_limit = config.max_nesting_depth
        self.loop_iteration_limit = config.max_loop_iterations
        self.output_stream_limit = config.max_output_bytes

    def setup_tags_and_filters(self, *, extra: bool = False) -> None:
        for tag in (Literal, Output, RestrictedIllegal, IfTag, UnlessTag, BoundedForTag, CommentTag):
            self.add_tag(tag)
        register_filters(self)


# =============================================================================
# Helpers
# =============================================================================

def token_location(token: Optional[Token]) -> tuple[int, int]:
    """1-based (line, column) of a token, (0, 0) when unknown."""
    if token is None or token.start_index < 0:
        return 0, 0
    before = token.source[: token.start_index]
    return before.count("\n") + 1, token.start_index - before.rfind("\n")


def format_path(path: Iterable[object]) -> str:
    """['items', 0, 'name'] → 'items[0].name'."""
    text = ""
    for segment in path:
        if isinstance(segment, int):
            text += f"[{segment}]"
        else:
            text += f".{segment}" if text else str(segment)
    return text

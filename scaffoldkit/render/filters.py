"""
Filter registry.

Fixed set; templates cannot register filters. Each entry records its arity so
unknown filters and wrong argument counts are caught when the template is
compiled, not while it renders.

Filter functions receive plain values (None for nil/undefined) and raise
ValueError/TypeError on bad input. `FilterSpec.as_liquid_filter()` wraps them
for the liquid environment:
- Undefined arguments become None
- ValueError/TypeError become FilterArgumentError (FILTER_FAILED)
- filters that can grow text check the predicted size before building it,
  and every result is checked against the output budget
"""

import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from liquid import Environment, is_undefined
from liquid.builtin.expressions import KeywordArgument
from liquid.exceptions import FilterArgumentError, LiquidSyntaxError, OutputStreamLimitError
from liquid.filter import with_environment

from scaffoldkit.domain.schemas import format_value

_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


@dataclass(frozen=True)
class FilterSpec:
    name: str
    func: Callable[..., Any]
    min_args: int = 0
    max_args: int = 0
    growth: Callable[..., Iterable[int]] | None = None

    def arity_text(self) -> str:
        if self.min_args == self.max_args:
            return f"{self.min_args} argument(s)"
        return f"{self.min_args}-{self.max_args} argument(s)"

    def validate(self, env: Environment, token: Any, name: str, args: list) -> None:
        """Compile-time argument check, called once per filter call site."""
        if any(isinstance(arg, KeywordArgument) for arg in args):
            raise LiquidSyntaxError(f"filter '{name}' does not take keyword arguments", token=token)
        if not self.min_args <= len(args) <= self.max_args:
            raise LiquidSyntaxError(
                f"filter '{name}' takes {self.arity_text()}, got {len(args)}",
                token=token,
            )

    def as_liquid_filter(self) -> Callable[..., Any]:
        spec = self

        @with_environment
        def apply(value: Any, *args: Any, environment: Environment) -> Any:
            limit = environment.output_stream_limit
            value = _plain(value)
            args = tuple(_plain(arg) for arg in args)
            try:
                if limit and spec.growth is not None:
                    _check_size(spec.name, spec.growth(value, *args), limit)
                result = spec.func(value, *args)
            except (TypeError, ValueError) as e:
                raise FilterArgumentError(f"{spec.name}: {e}", token=None) from e
            if limit:
                _check_size(spec.name, _result_sizes(result), limit)
            return result

        apply.validate = spec.validate  # type: ignore[attr-defined]
        apply.__name__ = spec.name
        return apply


def register_filters(env: Environment) -> None:
    """Install the registry on a liquid environment."""
    for spec in FILTERS.values():
        env.add_filter(spec.name, spec.as_liquid_filter())


# =============================================================================
# Helpers
# =============================================================================

def _plain(value: Any) -> Any:
    return None if is_undefined(value) else value


def _text(value: Any) -> str:
    return format_value(value)


def _int_arg(value: Any, filter_name: str) -> int:
    if isinstance(value, bool):
        raise TypeError(f"{filter_name} expects an integer, got {format_value(value)}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{filter_name} expects an integer, got '{format_value(value)}'") from e


def _words(value: Any) -> list[str]:
    return [w.lower() for w in _WORD_PATTERN.findall(_text(value))]


def _check_size(name: str, sizes: Iterable[int], limit: int) -> None:
    """Stop as soon as the running total passes `limit`."""
    total = 0
    for size_ in sizes:
        total += size_
        if total > limit:
            raise OutputStreamLimitError(
                f"{name}: result exceeds the {limit} byte output limit",
                token=None,
            )


def _result_sizes(result: Any) -> Iterator[int]:
    if isinstance(result, str):
        yield len(result.encode("utf-8"))
    elif isinstance(result, list):
        for item in result:
            yield len(_text(item).encode("utf-8"))


# =============================================================================
# String Filters
# =============================================================================

def upcase(value: Any) -> str:
    return _text(value).upper()


def downcase(value: Any) -> str:
    return _text(value).lower()


def capitalize(value: Any) -> str:
    return _text(value).capitalize()


def strip(value: Any) -> str:
    return _text(value).strip()


def lstrip(value: Any) -> str:
    return _text(value).lstrip()


def rstrip(value: Any) -> str:
    return _text(value).rstrip()


def truncate(value: Any, length: Any, ellipsis: Any = "...") -> str:
    """Shorten to `length` characters, ellipsis included."""
    text = _text(value)
    limit = _int_arg(length, "truncate")
    if limit < 0:
        raise ValueError("truncate length must not be negative")
    if len(text) <= limit:
        return text
    tail = _text(ellipsis)
    return text[: max(limit - len(tail), 0)] + tail


def replace(value: Any, old: Any, new: Any) -> str:
    return _text(value).replace(_text(old), _text(new))


def remove(value: Any, part: Any) -> str:
    return _text(value).replace(_text(part), "")


def append(value: Any, suffix: Any) -> str:
    return _text(value) + _text(suffix)


def prepend(value: Any, prefix: Any) -> str:
    return _text(prefix) + _text(value)


def slugify(value: Any) -> str:
    """'Hello, World!' → 'hello-world'."""
    return re.sub(r"[^a-z0-9]+", "-", _text(value).lower()).strip("-")


def snake_case(value: Any) -> str:
    return "_".join(_words(value))


def kebab_case(value: Any) -> str:
    return "-".join(_words(value))


def camel_case(value: Any) -> str:
    words = _words(value)
    return words[0] + "".join(w.capitalize() for w in words[1:]) if words else ""


def pascal_case(value: Any) -> str:
    return "".join(w.capitalize() for w in _words(value))


# =============================================================================
# Value / Sequence Filters
# =============================================================================

def default(value: Any, fallback: Any) -> Any:
    """fallback if value is nil, false, "" or empty."""
    if value is None or value is False or (hasattr(value, "__len__") and len(value) == 0):
        return fallback
    return value


def size(value: Any) -> int:
    if isinstance(value, (str, list, tuple, range, Mapping)):
        return len(value)
    return 0


def split(value: Any, separator: Any) -> list[str]:
    text = _text(value)
    sep = _text(separator)
    if not text:
        return []
    if sep == "":
        return list(text)
    return text.split(sep)


def join(value: Any, separator: Any = " ") -> str:
    if isinstance(value, (list, tuple, range)):
        return _text(separator).join(_text(v) for v in value)
    return _text(value)


def first(value: Any) -> Any:
    if isinstance(value, (str, list, tuple, range)):
        return value[0] if len(value) else None
    return None


def last(value: Any) -> Any:
    if isinstance(value, (str, list, tuple, range)):
        return value[-1] if len(value) else None
    return None


# =============================================================================
# Growth Estimates
# =============================================================================
# Character counts of the result, yielded before the result is built.

def replace_growth(value: Any, old: Any, new: Any) -> Iterator[int]:
    text, old, new = _text(value), _text(old), _text(new)
    # "" matches between every character and at both ends
    count = text.count(old) if old else len(text) + 1
    yield len(text) + count * (len(new) - len(old))


def affix_growth(value: Any, affix: Any) -> Iterator[int]:
    yield len(_text(value))
    yield len(_text(affix))


def join_growth(value: Any, separator: Any = " ") -> Iterator[int]:
    if not isinstance(value, (list, tuple, range)):
        yield len(_text(value))
        return
    sep = len(_text(separator))
    for i, item in enumerate(value):
        if i:
            yield sep
        yield len(_text(item))


FILTERS: dict[str, FilterSpec] = {
    spec.name: spec
    for spec in (
        FilterSpec("upcase", upcase),
        FilterSpec("downcase", downcase),
        FilterSpec("capitalize", capitalize),
        FilterSpec("strip", strip),
        FilterSpec("lstrip", lstrip),
        FilterSpec("rstrip", rstrip),
        FilterSpec("truncate", truncate, 1, 2),
        FilterSpec("replace", replace, 2, 2, growth=replace_growth),
        FilterSpec("remove", remove, 1, 1),
        FilterSpec("append", append, 1, 1, growth=affix_growth),
        FilterSpec("prepend", prepend, 1, 1, growth=affix_growth),
        FilterSpec("default", default, 1, 1),
        FilterSpec("size", size),
        FilterSpec("split", split, 1, 1),
        FilterSpec("join", join, 0, 1, growth=join_growth),
        FilterSpec("first", first),
        FilterSpec("last", last),
        FilterSpec("slugify", slugify),
        FilterSpec("snake_case", snake_case),
        FilterSpec("camel_case", camel_case),
        FilterSpec("pascal_case", pascal_case),
        FilterSpec("kebab_case", kebab_case),
    )
}

"""
test_engine.py - template renderer tests

DoD:
- output, if/elsif/else, unless, for (+ forloop, limit/offset/reversed), raw, comment
- undefined variables → "" + warning (RenderError if strict)
- syntax errors carry file, line and column
- output/iteration/nesting budgets enforced, including filter intermediates
- rendering never mutates inputs and is deterministic
"""

import pytest

from scaffoldkit.config import EngineConfig
from scaffoldkit.domain.errors import ErrorCodes, RenderError
from scaffoldkit.render.engine import TemplateRenderer
from scaffoldkit.templates.parameters import resolve_parameters

PARAMS = {
    "name": "demo",
    "flag": True,
    "off": False,
    "zero": 0,
    "blank_text": "",
    "db": "sqlite",
    "items": ["a", "b", "c"],
    "none": [],
    "n": 3,
}


@pytest.fixture
def renderer(config: EngineConfig) -> TemplateRenderer:
    return TemplateRenderer(config)


def render(renderer: TemplateRenderer, source: str, params=None) -> str:
    return renderer.render(source, PARAMS if params is None else params).text


def render_error(renderer: TemplateRenderer, source: str, params=None) -> RenderError:
    with pytest.raises(RenderError) as exc_info:
        renderer.render(source, PARAMS if params is None else params, filename="src/main.rs")
    return exc_info.value


# =============================================================================
# Output
# =============================================================================

class TestOutput:
    """{{ expr }}"""

    def test_text_passthrough(self, renderer):
        assert render(renderer, "no tags here\n") == "no tags here\n"

    def test_variable(self, renderer):
        assert render(renderer, "Hello {{ name }}!") == "Hello demo!"

    def test_filter(self, renderer):
        assert render(renderer, "{{ name | upcase }}") == "DEMO"

    def test_filter_chain_left_to_right(self, renderer):
        assert render(renderer, "{{ name | append: '-app' | upcase }}") == "DEMO-APP"

    def test_filter_arguments(self, renderer):
        assert render(renderer, "{{ 'hello world' | truncate: 8 }}") == "hello..."
        assert render(renderer, "{{ 'a-b' | replace: '-', '_' }}") == "a_b"

    def test_case_filters(self, renderer):
        assert render(renderer, "{{ 'my-project' | pascal_case }} {{ 'my-project' | snake_case }}") == "MyProject my_project"

    def test_booleans_render_lowercase(self, renderer):
        assert render(renderer, "{{ flag }}/{{ off }}") == "true/false"

    def test_literals(self, renderer):
        assert render(renderer, "{{ 42 }} {{ 'x' }} {{ nil }}") == "42 x "

    def test_member_access(self, renderer):
        assert render(renderer, "{{ items[0] }}{{ items.size }}{{ items.last }}{{ items.first }}") == "a3ca"

    def test_mapping_access(self, renderer):
        params = {"cfg": {"port": 8080, "tls": {"on": True}}}
        assert render(renderer, "{{ cfg.port }} {{ cfg['tls'].on }}", params) == "8080 true"

    def test_sequence_output_is_concatenated(self, renderer):
        assert render(renderer, "{{ items }}") == "abc"

    def test_whitespace_control(self, renderer):
        assert render(renderer, "a  {{- name -}}  b") == "ademob"
        assert render(renderer, "x\n{%- if flag -%}\n  y\n{%- endif %}") == "xy"

    def test_whitespace_only_block_kept(self, renderer):
        assert render(renderer, "a{% if flag %}\n{% endif %}b") == "a\nb"

    def test_resolved_parameters_scope(self, renderer, manifest, fixed_now):
        params = resolve_parameters(manifest, {"use_docker": "yes"}, now=fixed_now)
        output = renderer.render("{{ project_name }} {{ use_docker }} {{ date }}", params)

        assert output.text == "my-project true 2025-01-02"
        assert output.warnings == []


# =============================================================================
# Blocks
# =============================================================================

class TestConditionals:
    """if / elsif / else / unless"""

    SOURCE = "{% if db == 'postgres' %}pg{% elsif db == 'sqlite' %}lite{% else %}none{% endif %}"

    @pytest.mark.parametrize("db, expected", [("postgres", "pg"), ("sqlite", "lite"), ("mysql", "none")])
    def test_branches(self, renderer, db, expected):
        assert render(renderer, self.SOURCE, {"db": db}) == expected

    def test_unless(self, renderer):
        assert render(renderer, "{% unless off %}on{% else %}off{% endunless %}") == "on"

    @pytest.mark.parametrize("name", ["zero", "blank_text", "none", "flag"])
    def test_truthy_values(self, renderer, name):
        assert render(renderer, f"{{% if {name} %}}t{{% else %}}f{{% endif %}}") == "t"

    @pytest.mark.parametrize("name", ["off", "nil", "missing"])
    def test_falsy_values(self, renderer, name):
        assert render(renderer, f"{{% if {name} %}}t{{% else %}}f{{% endif %}}") == "f"

    def test_empty_checks(self, renderer):
        assert render(renderer, "{% if none == empty %}e{% endif %}{% if items.size > 0 %}n{% endif %}") == "en"

    def test_and_or_evaluate_right_to_left(self, renderer):
        assert render(renderer, "{% if false and false or true %}t{% else %}f{% endif %}") == "f"
        assert render(renderer, "{% if true or false and false %}t{% else %}f{% endif %}") == "t"

    def test_comparisons(self, renderer):
        assert render(renderer, "{% if n > 2 and n <= 3 %}ok{% endif %}") == "ok"
        assert render(renderer, "{% if name != 'demo' %}x{% else %}same{% endif %}") == "same"

    def test_contains(self, renderer):
        assert render(renderer, "{% if name contains 'em' %}s{% endif %}{% if items contains 'b' %}l{% endif %}") == "sl"

    def test_contains_nil_is_false(self, renderer):
        assert render(renderer, "{% if name contains nil %}t{% else %}f{% endif %}") == "f"

    def test_multiline_tag(self, renderer):
        assert render(renderer, "{% if\n  flag %}yes{% endif %}") == "yes"


class TestLoops:
    """for / else"""

    def test_loop_with_forloop(self, renderer):
        source = "{% for x in items %}{{ forloop.index }}{{ x }}{% unless forloop.last %},{% endunless %}{% endfor %}"
        assert render(renderer, source) == "1a,2b,3c"

    def test_forloop_fields(self, renderer):
        source = "{% for x in items %}{{ forloop.index0 }}{{ forloop.rindex }}{{ forloop.first }} {% endfor %}"
        assert render(renderer, source) == "03true 12false 21false "

    def test_else_on_empty(self, renderer):
        assert render(renderer, "{% for x in none %}{{ x }}{% else %}empty{% endfor %}") == "empty"

    def test_range(self, renderer):
        assert render(renderer, "{% for i in (1..n) %}{{ i }}{% endfor %}") == "123"

    def test_options(self, renderer):
        assert render(renderer, "{% for i in (1..5) limit: 2 offset: 1 %}{{ i }}{% endfor %}") == "23"
        assert render(renderer, "{% for x in items reversed %}{{ x }}{% endfor %}") == "cba"

    def test_string_iterates_once(self, renderer):
        assert render(renderer, "{% for c in name %}[{{ c }}]{% endfor %}") == "[demo]"

    def test_mapping_iterates_pairs(self, renderer):
        params = {"env": {"A": "1", "B": "2"}}
        assert render(renderer, "{% for kv in env %}{{ kv[0] }}={{ kv[1] }};{% endfor %}", params) == "A=1;B=2;"

    def test_nested_loops(self, renderer):
        source = "{% for i in (1..2) %}{% for x in items limit: 2 %}{{ i }}{{ x }} {% endfor %}{% endfor %}"
        assert render(renderer, source) == "1a 1b 2a 2b "

    def test_loop_variable_does_not_leak(self, renderer):
        output = renderer.render("{% for x in items %}{% endfor %}[{{ x }}]", PARAMS)

        assert output.text == "[]"
        assert [w.subject for w in output.warnings] == ["x"]

    def test_loop_variable_shadows_parameter(self, renderer):
        assert render(renderer, "{% for name in items %}{{ name }}{% endfor %}{{ name }}") == "abcdemo"

    def test_invalid_limit(self, renderer):
        error = render_error(renderer, "{% for x in items limit: 'two' %}{% endfor %}")
        assert error.code == ErrorCodes.TEMPLATE_TYPE

    def test_break_is_not_supported(self, renderer):
        error = render_error(renderer, "{% for x in items %}{% break %}{% endfor %}")
        assert error.code == ErrorCodes.UNKNOWN_TAG


class TestVerbatim:
    """raw / comment"""

    def test_raw(self, renderer):
        assert render(renderer, "{% raw %}{{ name }} {% if %}{% endraw %}") == "{{ name }} {% if %}"

    def test_comment_dropped(self, renderer):
        assert render(renderer, "a{% comment %}{{ name }} {% bogus %}{% endcomment %}b") == "ab"

    def test_unclosed_raw(self, renderer):
        error = render_error(renderer, "{% raw %}{{ name }}")
        assert error.code == ErrorCodes.UNBALANCED_BLOCK

    def test_unclosed_comment(self, renderer):
        error = render_error(renderer, "{% comment %}never closed")
        assert error.code == ErrorCodes.UNBALANCED_BLOCK


# =============================================================================
# Undefined Variables
# =============================================================================

class TestUndefined:
    """Missing-variable policy."""

    def test_renders_empty_with_warning(self, renderer):
        output = renderer.render("ab\n[{{ missing }}]", PARAMS, filename="README.md")

        assert output.text == "ab\n[]"
        assert len(output.warnings) == 1
        warning = output.warnings[0]
        assert warning.code == ErrorCodes.UNDEFINED_VARIABLE
        assert (warning.filename, warning.line, warning.column) == ("README.md", 2, 5)
        assert warning.subject == "missing"

    def test_warning_deduplicated_per_site(self, renderer):
        output = renderer.render("{% for i in (1..3) %}{{ missing }}{% endfor %}{{ missing }}", PARAMS)
        assert len(output.warnings) == 2

    def test_missing_member(self, renderer):
        output = renderer.render("{{ items.color }}", PARAMS)

        assert output.text == ""
        assert output.warnings[0].subject == "items.color"

    def test_undefined_in_condition_warns(self, renderer):
        output = renderer.render("{% if missing %}x{% endif %}", PARAMS)

        assert output.text == ""
        assert [w.subject for w in output.warnings] == ["missing"]

    def test_filters_apply_to_undefined(self, renderer):
        output = renderer.render("{{ missing | default: 'fallback' }}", PARAMS)

        assert output.text == "fallback"
        assert len(output.warnings) == 1

    def test_strict_mode(self, config):
        strict = TemplateRenderer(config.with_overrides(strict_undefined=True))

        error = render_error(strict, "ok\n  {{ missing }}")
        assert error.code == ErrorCodes.UNDEFINED_VARIABLE
        assert (error.filename, error.line, error.column) == ("src/main.rs", 2, 6)


# =============================================================================
# Syntax Errors
# =============================================================================

class TestSyntaxErrors:
    """Fatal compile errors with location."""

    def test_unknown_tag(self, renderer):
        error = render_error(renderer, "line1\n  {% include 'x' %}")

        assert error.code == ErrorCodes.UNKNOWN_TAG
        assert (error.line, error.column) == (2, 6)
        assert "src/main.rs:2:6" in str(error)

    def test_unknown_tag_suggestion(self, renderer):
        error = render_error(renderer, "{% iff flag %}{% endif %}")
        assert "Did you mean 'if'?" in error.suggestion

    def test_unknown_filter(self, renderer):
        error = render_error(renderer, "{{ name | upcse }}")

        assert error.code == ErrorCodes.UNKNOWN_FILTER
        assert "Did you mean 'upcase'?" in error.suggestion
        assert (error.line, error.column) == (1, 11)

    def test_filter_arity(self, renderer):
        assert render_error(renderer, "{{ name | truncate }}").code == ErrorCodes.TEMPLATE_SYNTAX
        assert render_error(renderer, "{{ name | upcase: 1 }}").code == ErrorCodes.TEMPLATE_SYNTAX

    def test_filter_keyword_argument(self, renderer):
        assert render_error(renderer, "{{ name | truncate: length: 3 }}").code == ErrorCodes.TEMPLATE_SYNTAX

    @pytest.mark.parametrize("source", [
        "{% if flag %}open",
        "{% for x in items %}open",
        "{% unless flag %}open",
        "{% endif %}",
        "{% else %}",
        "{% if flag %}{% endfor %}",
    ])
    def test_unbalanced(self, renderer, source):
        assert render_error(renderer, source).code == ErrorCodes.UNBALANCED_BLOCK

    @pytest.mark.parametrize("source", [
        "{{ name name }}",
        "{{ name | }}",
        "{% if %}x{% endif %}",
        "{% if flag %}x{% else flag %}y{% endif %}",
        "{% for x items %}{% endfor %}",
        "{% for x in items sorted %}{% endfor %}",
    ])
    def test_template_syntax(self, renderer, source):
        assert render_error(renderer, source).code == ErrorCodes.TEMPLATE_SYNTAX

    def test_compile_error_does_not_depend_on_branch(self, renderer):
        error = render_error(renderer, "{% if off %}{{ name | nope }}{% endif %}")
        assert error.code == ErrorCodes.UNKNOWN_FILTER

    def test_mismatched_ordering(self, renderer):
        assert render_error(renderer, "{% if name < 1 %}x{% endif %}").code == ErrorCodes.TEMPLATE_TYPE


# =============================================================================
# Budgets
# =============================================================================

class TestBudgets:
    """Per-file resource limits."""

    def test_iteration_limit(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_loop_iterations=5))
        error = render_error(renderer, "{% for i in (1..10) %}{% endfor %}")

        assert error.code == ErrorCodes.ITERATION_LIMIT
        assert error.line == 1

    def test_iteration_limit_counts_nested_loops(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_loop_iterations=10))
        source = "{% for i in (1..3) %}{% for j in (1..3) %}{% endfor %}{% endfor %}"

        assert render_error(renderer, source).code == ErrorCodes.ITERATION_LIMIT

    def test_iteration_limit_counts_sequential_loops(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_loop_iterations=5))
        source = "{% for i in (1..3) %}{% endfor %}{% for j in (1..3) %}{% endfor %}"

        assert render_error(renderer, source).code == ErrorCodes.ITERATION_LIMIT

    def test_huge_reversed_range_rejected(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_loop_iterations=5))
        error = render_error(renderer, "{% for i in (1..100000000000) reversed %}{% endfor %}")

        assert error.code == ErrorCodes.ITERATION_LIMIT

    def test_within_iteration_limit(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_loop_iterations=3))
        assert render(renderer, "{% for i in (1..3) %}{{ i }}{% endfor %}") == "123"

    def test_output_limit(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_output_bytes=10))
        error = render_error(renderer, "{{ s }}", {"s": "x" * 11})

        assert error.code == ErrorCodes.OUTPUT_LIMIT

    def test_output_limit_counts_utf8_bytes(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_output_bytes=10))
        assert render_error(renderer, "{{ s }}", {"s": "é" * 6}).code == ErrorCodes.OUTPUT_LIMIT

    def test_filter_intermediate_counts_against_output_limit(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_output_bytes=100))
        source = (
            '{{ x | replace: "", x | replace: "", x | replace: "", x '
            '| replace: "", x | size }}'
        )
        error = render_error(renderer, source, {"x": "my-project"})

        assert error.code == ErrorCodes.OUTPUT_LIMIT
        assert "replace" in error.message

    @pytest.mark.parametrize("source", [
        "{{ x | append: x | append: x | size }}",
        "{{ x | prepend: x | prepend: x | size }}",
        "{{ (1..100000000000) | join: ',' | size }}",
    ])
    def test_growing_filters_bounded(self, config, source):
        renderer = TemplateRenderer(config.with_overrides(max_output_bytes=100))
        error = render_error(renderer, source, {"x": "y" * 40})

        assert error.code == ErrorCodes.OUTPUT_LIMIT

    def test_small_intermediates_allowed(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_output_bytes=100))
        output = renderer.render('{{ x | replace: "-", "__" | size }}', {"x": "my-project"})

        assert output.text == "11"

    def test_nesting_limit(self, config):
        renderer = TemplateRenderer(config.with_overrides(max_nesting_depth=2))
        source = "{% if flag %}{% for x in items %}{% if flag %}x{% endif %}{% endfor %}{% endif %}"

        assert render_error(renderer, source).code == ErrorCodes.NESTING_LIMIT

    def test_filter_failure(self, renderer):
        error = render_error(renderer, "{{ name | truncate: 'abc' }}")

        assert error.code == ErrorCodes.FILTER_FAILED
        assert "truncate" in error.message
        assert error.column == 11


# =============================================================================
# Purity
# =============================================================================

class TestPurity:
    """No mutation, deterministic output."""

    def test_inputs_not_mutated(self, renderer):
        params = {"items": ["b", "a"], "name": "x"}
        renderer.render("{% for i in items reversed %}{{ i }}{% endfor %}{{ name | upcase }}", params)

        assert params == {"items": ["b", "a"], "name": "x"}

    def test_deterministic(self, renderer):
        source = "{% for x in items %}{{ x | upcase }}{% endfor %}{{ missing }}"
        first = renderer.render(source, PARAMS)
        second = renderer.render(source, PARAMS)

        assert first == second

    def test_compiled_template_reusable(self, renderer):
        template = renderer.compile("{{ name }}{{ other }}", "a.txt")

        first = renderer.render_template(template, {"name": "x"})
        second = renderer.render_template(template, {"name": "y", "other": "z"})

        assert (first.text, len(first.warnings)) == ("x", 1)
        assert (second.text, second.warnings) == ("yz", [])

    def test_no_implicit_variables(self, renderer):
        output = renderer.render("[{{ partial }}{{ now }}{{ today }}]", {})

        assert output.text == "[]"
        assert [w.subject for w in output.warnings] == ["partial", "now", "today"]

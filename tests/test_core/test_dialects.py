from __future__ import annotations

import pytest

from tombo.core.dialects import (
    NameFilter,
    Pep621ArrayDialect,
    PoetryParenthesesDialect,
    PoetryTableDialect,
    RequirementsLineDialect,
    toml_code_end,
)
from tombo.models.dependency import DependencySource, Span, SyntaxDialect

OPERATORS = ["==", ">=", "<=", "!=", "~=", ">", "<", "==="]


@pytest.mark.unit
class TestHelpers:
    def test_toml_code_end_ignores_hash_in_strings(self) -> None:
        assert toml_code_end('url = "https://x#frag"  # comment') == 24

    def test_toml_code_end_without_comment(self) -> None:
        assert toml_code_end('a = "b"') == 7

    def test_name_filter_rejects_keywords_and_short_names(self) -> None:
        name_filter = NameFilter()
        assert name_filter.accepts("requests")
        assert name_filter.accepts("zope.interface")
        assert not name_filter.accepts("if")
        assert not name_filter.accepts("True")
        assert not name_filter.accepts("x")
        assert not name_filter.accepts("-flag")

    def test_name_filter_denylist_is_configurable(self) -> None:
        name_filter = NameFilter(denylist=frozenset({"internal-tool"}))
        assert name_filter.accepts("example")
        assert not name_filter.accepts("Internal-Tool")


@pytest.mark.unit
class TestRoundTrip:
    """Every dialect returns the name verbatim and a span over ``<op>version``."""

    @pytest.mark.parametrize("operator", OPERATORS)
    def test_pep621_array(self, operator: str) -> None:
        line = f'dependencies = ["Flask_Login{operator}0.6.3"]'
        [dep] = Pep621ArrayDialect().parse(line)

        assert dep.name == "Flask_Login"
        assert dep.span.slice(line) == f"{operator}0.6.3"
        assert dep.name_span.slice(line) == "Flask_Login"
        assert dep.dialect is SyntaxDialect.PEP621_ARRAY

    @pytest.mark.parametrize("operator", OPERATORS + ["^", "~", ""])
    def test_poetry_table(self, operator: str) -> None:
        line = f'flask-login = "{operator}0.6.3"'
        [dep] = PoetryTableDialect().parse(line)

        assert dep.name == "flask-login"
        assert dep.span.slice(line) == f"{operator}0.6.3"

    @pytest.mark.parametrize("operator", OPERATORS)
    def test_poetry_parentheses(self, operator: str) -> None:
        line = f'    "flask-login ({operator}0.6.3)",'
        [dep] = PoetryParenthesesDialect().parse(line)

        assert dep.name == "flask-login"
        assert dep.span.slice(line) == f"{operator}0.6.3"

    @pytest.mark.parametrize("operator", OPERATORS)
    def test_requirements_line(self, operator: str) -> None:
        line = f"flask-login {operator} 0.6.3"
        [dep] = RequirementsLineDialect().parse(line)

        assert dep.name == "flask-login"
        assert dep.span.slice(line) == f"{operator} 0.6.3"
        assert dep.dialect is SyntaxDialect.REQUIREMENTS_LINE


@pytest.mark.unit
class TestPep621ArrayDialect:
    def test_multiple_entries_on_one_line(self) -> None:
        line = 'dependencies = ["requests>=2.31", "rich", \'click~=8.1\']'
        deps = Pep621ArrayDialect().parse(line)

        assert [d.name for d in deps] == ["requests", "rich", "click"]
        assert deps[1].version_constraint == ""
        assert deps[1].span.is_empty
        assert deps[1].span.start == deps[1].name_span.end

    def test_extras_are_recorded_and_skipped(self) -> None:
        line = '    "httpx[http2, cli]>=0.27",'
        [dep] = Pep621ArrayDialect().parse(line)

        assert dep.name == "httpx"
        assert dep.extras == ("http2", "cli")
        assert dep.span.slice(line) == ">=0.27"

    def test_bare_entry_with_extras_inserts_after_bracket(self) -> None:
        line = '    "httpx[http2]",'
        [dep] = Pep621ArrayDialect().parse(line)
        assert dep.span == Span(17, 17)

    def test_marker_is_excluded(self) -> None:
        line = '    "tomli>=2.0; python_version < \'3.11\'",'
        [dep] = Pep621ArrayDialect().parse(line)
        assert dep.version_constraint == ">=2.0"

    def test_assignment_values_are_not_array_elements(self) -> None:
        assert Pep621ArrayDialect().parse('name = "my-project"') == []
        assert Pep621ArrayDialect().parse('requires-python = ">=3.8"') == []

    def test_comment_is_ignored(self) -> None:
        assert Pep621ArrayDialect().parse('# "requests>=2.0",') == []

    def test_unterminated_string_runs_to_end_of_line(self) -> None:
        line = '    "requests>=2.3'
        [dep] = Pep621ArrayDialect().parse(line)
        assert dep.span.slice(line) == ">=2.3"

    def test_source_and_line_are_recorded(self) -> None:
        [dep] = Pep621ArrayDialect().parse('"pytest>=7"', 12, DependencySource.OPTIONAL_DEPENDENCIES)
        assert dep.line == 12
        assert dep.source is DependencySource.OPTIONAL_DEPENDENCIES

    def test_denylisted_name_is_rejected(self) -> None:
        assert Pep621ArrayDialect().parse('["true>=1.0"]') == []


@pytest.mark.unit
class TestPoetryTableDialect:
    def test_inline_table_version(self) -> None:
        line = 'httpx = { version = "~0.27", extras = ["http2"] }'
        [dep] = PoetryTableDialect().parse(line)

        assert dep.span.slice(line) == "~0.27"
        assert dep.extras == ("http2",)
        assert dep.operator == "~"

    def test_inline_table_without_version(self) -> None:
        assert PoetryTableDialect().parse('mylib = { path = "../mylib" }') == []

    def test_quoted_key(self) -> None:
        line = '"zope.interface" = "^6.0"'
        [dep] = PoetryTableDialect().parse(line)
        assert dep.name == "zope.interface"
        assert dep.name_span == Span(1, 15)

    def test_non_package_keys_are_skipped(self) -> None:
        dialect = PoetryTableDialect()
        assert dialect.parse('python = "^3.8"') == []
        assert dialect.parse('version = "1.0.0"') == []

    def test_wildcard_and_alternatives(self) -> None:
        dialect = PoetryTableDialect()
        assert dialect.parse('pytest-cov = "*"')[0].version_constraint == "*"
        assert dialect.parse('numpy = "^1.24 || ^2.0"')[0].version_constraint == "^1.24 || ^2.0"

    def test_non_version_string_is_rejected(self) -> None:
        assert PoetryTableDialect().parse('description = "A tool"') == []
        assert PoetryTableDialect().parse('mylib = "git+https://x"') == []

    def test_empty_string_is_insertion_point(self) -> None:
        line = 'requests = ""'
        [dep] = PoetryTableDialect().parse(line)
        assert dep.span == Span(12, 12)

    def test_parse_version_key(self) -> None:
        line = 'version = "^2.31"  # pinned'
        dep = PoetryTableDialect().parse_version_key(line, "requests", 4)

        assert dep is not None
        assert dep.name == "requests"
        assert dep.line == 4
        assert dep.span.slice(line) == "^2.31"

    def test_parse_version_key_ignores_other_keys(self) -> None:
        assert PoetryTableDialect().parse_version_key('optional = true', "requests") is None


@pytest.mark.unit
class TestPoetryParenthesesDialect:
    def test_span_excludes_parentheses(self) -> None:
        line = '"pandas (>=2.0,<3.0)"'
        [dep] = PoetryParenthesesDialect().parse(line)

        assert dep.name == "pandas"
        assert dep.span == Span(9, 19)
        assert dep.version_constraint == ">=2.0,<3.0"

    def test_whitespace_inside_parentheses_is_trimmed(self) -> None:
        line = '"pandas ( >=2.0 )"'
        [dep] = PoetryParenthesesDialect().parse(line)
        assert dep.span.slice(line) == ">=2.0"

    def test_missing_closing_parenthesis(self) -> None:
        line = '"pandas (>=2.'
        [dep] = PoetryParenthesesDialect().parse(line)
        assert dep.span.slice(line) == ">=2."

    def test_marker_after_parentheses(self) -> None:
        line = '"tomli (>=2.0) ; python_version < \'3.11\'"'
        [dep] = PoetryParenthesesDialect().parse(line)
        assert dep.version_constraint == ">=2.0"

    def test_plain_pep508_string_is_not_matched(self) -> None:
        assert PoetryParenthesesDialect().parse('"requests>=2.31"') == []


@pytest.mark.unit
class TestRequirementsLineDialect:
    @pytest.mark.parametrize(
        "line",
        [
            "",
            "   ",
            "# a comment",
            "-r base.txt",
            "--requirement base.txt",
            "-e .",
            "-c constraints.txt",
            "--index-url https://mirror.local/simple",
            "git+https://github.com/psf/requests.git",
            "./local/package",
            "requests @ https://example.com/requests.whl",
        ],
    )
    def test_lines_without_dependencies(self, line: str) -> None:
        assert RequirementsLineDialect().parse(line) == []

    def test_comment_and_marker_excluded(self) -> None:
        line = 'requests>=2.31 ; python_version >= "3.8"  # pinned'
        [dep] = RequirementsLineDialect().parse(line)
        assert dep.span.slice(line) == ">=2.31"

    def test_hash_option_excluded(self) -> None:
        line = "requests==2.31.0 --hash=sha256:abcdef"
        [dep] = RequirementsLineDialect().parse(line)
        assert dep.span.slice(line) == "==2.31.0"

    def test_line_continuation_excluded(self) -> None:
        line = "requests==2.31.0 \\"
        [dep] = RequirementsLineDialect().parse(line)
        assert dep.version_constraint == "==2.31.0"

    def test_operator_only(self) -> None:
        line = "requests>="
        [dep] = RequirementsLineDialect().parse(line)
        assert dep.span == Span(8, 10)
        assert dep.operator == ">="

    def test_bare_name(self) -> None:
        [dep] = RequirementsLineDialect().parse("requests")
        assert dep.span == Span(8, 8)
        assert not dep.has_constraint

    def test_poetry_shorthand_is_not_pep508(self) -> None:
        [dep] = RequirementsLineDialect().parse("requests^2.0")
        assert dep.operator == "^"

    def test_bare_version_without_operator_is_rejected(self) -> None:
        assert RequirementsLineDialect().parse("requests 2.31") == []

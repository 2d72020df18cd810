"""Tests for variable and text processors."""

from unittest.mock import MagicMock

import pytest

from harvest.context import ScopeContext
from harvest.exceptions import ProcessorException, ScriptException
from harvest.processors.core import DefProcessor
from harvest.scraper import Scraper
from harvest.variables import EMPTY, ListVariable, NodeVariable
from tests.utils import config, value, values


class TestDef:
    """Tests for <def> and its var-def alias."""

    def test_value_attribute_is_bound(self, run_config):
        result = run_config('<def var="x" value="Hello, ${name}!"/>', name="Ann")

        assert value(result, "x") == "Hello, Ann!"

    def test_value_attribute_wins_over_body(self, run_config):
        """The body is never executed when value is present."""
        result = run_config(
            '<def var="x" value="actual"><exit message="body ran"/></def>'
            '<def var="after" value="yes"/>'
        )

        assert not result.exited
        assert value(result, "x") == "actual"
        assert value(result, "after") == "yes"

    def test_value_attribute_does_not_consult_context(self):
        configuration = config('<def var="x" value="actual">ignored</def>')
        scraper = Scraper(configuration)
        context = MagicMock(wraps=ScopeContext())

        result = DefProcessor(configuration.root.children[0]).execute(
            scraper, context
        )

        assert result is EMPTY
        context.get_var.assert_not_called()
        context.contains_var.assert_not_called()
        context.set_local_var.assert_called_once_with(
            "x", NodeVariable("actual")
        )

    def test_body_is_bound_without_value(self, run_config):
        result = run_config('<def var="x"><template>${1 + 1}</template></def>')

        assert value(result, "x") == "2"

    def test_body_text_is_not_templated(self, run_config):
        result = run_config('<def var="x">${name}</def>', name="Ann")

        assert value(result, "x") == "${name}"

    def test_overwrite_false_keeps_existing(self, run_config):
        result = run_config(
            '<def var="x" value="1"/><def var="x" value="2" overwrite="false"/>'
            '<def var="y" value="3" overwrite="false"/>'
        )

        assert value(result, "x") == "1"
        assert value(result, "y") == "3"

    def test_var_def_alias(self, run_config):
        result = run_config('<var-def var="x">legacy</var-def>')

        assert value(result, "x") == "legacy"

    def test_multiple_children_make_a_list(self, run_config):
        result = run_config(
            '<def var="x"><text>a</text><text>b</text></def>'
        )

        assert isinstance(result.variables["x"], ListVariable)
        assert values(result, "x") == ["a", "b"]


def test_set_updates_enclosing_scope(run_config):
    result = run_config(
        """
        <def var="total" value="0"/>
        <loop item="n">
            <list><tokenize delimiters=",">1,2,3</tokenize></list>
            <body><set var="total" value="${int(total) + int(n)}"/></body>
        </loop>
        """
    )

    assert value(result, "total") == "6"


def test_get_returns_variable(run_config):
    result = run_config('<def var="b"><get var="a"/></def>', a=["x", "y"])

    assert values(result, "b") == ["x", "y"]


def test_get_unbound_is_empty(run_config):
    result = run_config('<def var="b"><get var="missing"/></def>')

    assert result.variables["b"] is EMPTY


def test_template_substitutes_placeholders(run_config):
    result = run_config(
        '<def var="greeting"><template>Hello, ${name}!</template></def>',
        name="World",
    )

    assert value(result, "greeting") == "Hello, World!"


def test_template_passes_lists_through(run_config):
    result = run_config(
        '<def var="copy"><template>${items}</template></def>',
        items=["a", "b"],
    )

    assert isinstance(result.variables["copy"], ListVariable)
    assert values(result, "copy") == ["a", "b"]


def test_text_joins_list_items(run_config):
    result = run_config(
        '<def var="joined"><text><get var="items"/></text></def>',
        items=["a", "b"],
    )

    assert value(result, "joined") == "a\nb"


def test_empty_discards_result_but_runs_body(run_config):
    result = run_config(
        '<def var="r"><empty><def var="side" value="effect"/>x</empty></def>'
    )

    assert result.variables["r"] is EMPTY
    assert value(result, "side") == "effect"


def test_id_binds_result(run_config):
    result = run_config('<template id="greeting">Hi ${name}</template>', name="Bo")

    assert value(result, "greeting") == "Hi Bo"


def test_failure_names_innermost_processor(run_config):
    with pytest.raises(ProcessorException) as exc_info:
        run_config('<def var="x"><template>${1 / 0}</template></def>')

    assert exc_info.value.tag == "template"
    assert exc_info.value.line == 1
    assert isinstance(exc_info.value.__cause__, ScriptException)
    assert "ZeroDivisionError" in str(exc_info.value)

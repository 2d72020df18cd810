"""Tests for html-to-xml, xpath, regexp and tokenize processors."""

import pytest
from lxml import etree

from harvest.exceptions import ConfigurationException, ProcessorException
from harvest.xml import evaluate_xpath, html_to_xml, parse_xml, serialize_item
from tests.utils import BOOKS_HTML, value, values

# =============================================================================
# lxml helpers
# =============================================================================


def test_html_to_xml_produces_well_formed_xml():
    xml = html_to_xml("<p>unclosed<br><b>bold")

    root = etree.fromstring(xml)
    assert root.tag == "html"
    assert root.findtext(".//b") == "bold"


def test_html_to_xml_of_blank_input():
    assert html_to_xml("   ") == ""


def test_parse_xml_falls_back_to_html():
    root = parse_xml("<p>one<p>two")

    assert [p.text for p in root.iter("p")] == ["one", "two"]


def test_serialize_strips_xhtml_namespace():
    root = etree.fromstring(
        '<html xmlns="http://www.w3.org/1999/xhtml"><body><p>x</p></body></html>'
    )
    (paragraph,) = evaluate_xpath(root, "//*[local-name()='p']")

    assert serialize_item(paragraph) == "<p>x</p>"


def test_evaluate_xpath_wraps_atomic_results():
    root = etree.fromstring("<ul><li>a</li><li>b</li></ul>")

    assert evaluate_xpath(root, "count(//li)") == [2.0]
    assert evaluate_xpath(root, "string(//li[2])") == ["b"]


def test_evaluate_xpath_with_variables():
    root = etree.fromstring("<ul><li id='a'>A</li><li id='b'>B</li></ul>")

    assert evaluate_xpath(root, "//li[@id=$key]/text()", {"key": "b"}) == ["B"]


def test_evaluate_xpath_rejects_bad_expression():
    root = etree.fromstring("<a/>")

    with pytest.raises(ConfigurationException, match="Invalid XPath"):
        evaluate_xpath(root, "//[")


# =============================================================================
# xpath / html-to-xml processors
# =============================================================================


def test_xpath_over_html(run_config):
    result = run_config(
        """
        <def var="titles">
            <xpath expression="//li[@class='book']/a/text()">
                <html-to-xml><get var="page"/></html-to-xml>
            </xpath>
        </def>
        """,
        page=BOOKS_HTML,
    )

    assert values(result, "titles") == ["Dune", "Emma", "Ulysses"]


def test_xpath_sees_context_variables(run_config):
    result = run_config(
        """
        <def var="link">
            <xpath expression="//a[text()=$wanted]/@href">
                <html-to-xml><get var="page"/></html-to-xml>
            </xpath>
        </def>
        """,
        page=BOOKS_HTML,
        wanted="Emma",
    )

    assert values(result, "link") == ["/books/2"]


def test_xpath_sees_hyphenated_variable_names(run_config):
    result = run_config(
        """
        <def var="link">
            <xpath expression="//a[text()=$wanted-title]/@href">
                <html-to-xml><get var="page"/></html-to-xml>
            </xpath>
        </def>
        """,
        page=BOOKS_HTML,
        **{"wanted-title": "Ulysses"},
    )

    assert values(result, "link") == ["/books/3"]


def test_xpath_element_results_serialize_as_markup(run_config):
    result = run_config(
        '<def var="bold"><xpath expression="//b"><get var="doc"/></xpath></def>',
        doc="<p>a <b>b</b> c</p>",
    )

    assert value(result, "bold") == "<b>b</b>"


def test_xpath_number_result(run_config):
    result = run_config(
        """
        <def var="count">
            <xpath expression="count(//li)">
                <html-to-xml><get var="page"/></html-to-xml>
            </xpath>
        </def>
        """,
        page=BOOKS_HTML,
    )

    assert value(result, "count") == "3"


def test_xpath_over_empty_body_is_empty(run_config):
    result = run_config(
        '<def var="r"><xpath expression="//a"><get var="missing"/></xpath></def>'
    )

    assert value(result, "r") == ""


def test_xpath_invalid_expression(run_config):
    with pytest.raises(ProcessorException, match="Invalid XPath"):
        run_config('<xpath expression="//[">&lt;a/&gt;</xpath>')


# =============================================================================
# regexp
# =============================================================================


def test_regexp_binds_groups_in_new_scope(run_config):
    result = run_config(
        r"""
        <def var="pairs">
            <regexp>
                <regexp-pattern>(?P&lt;key&gt;\w+)=(\d+)</regexp-pattern>
                <regexp-source><get var="query"/></regexp-source>
                <regexp-result>
                    <template>${key}:${_2} (${_0})</template>
                </regexp-result>
            </regexp>
        </def>
        """,
        query="a=1&b=22",
    )

    assert values(result, "pairs") == ["a:1 (a=1)", "b:22 (b=22)"]
    assert "key" not in result.variables
    assert "_0" not in result.variables


def test_regexp_without_result_returns_matches(run_config):
    result = run_config(
        r"""
        <def var="numbers">
            <regexp>
                <regexp-pattern>\d+</regexp-pattern>
                <regexp-source>a1b22c333</regexp-source>
            </regexp>
        </def>
        """
    )

    assert values(result, "numbers") == ["1", "22", "333"]


def test_regexp_max(run_config):
    result = run_config(
        r"""
        <def var="numbers">
            <regexp max="2">
                <regexp-pattern>\d+</regexp-pattern>
                <regexp-source>a1b22c333</regexp-source>
            </regexp>
        </def>
        """
    )

    assert values(result, "numbers") == ["1", "22"]


def test_regexp_matches_each_source_item(run_config):
    result = run_config(
        r"""
        <def var="years">
            <regexp>
                <regexp-pattern>\d{4}</regexp-pattern>
                <regexp-source><get var="dates"/></regexp-source>
            </regexp>
        </def>
        """,
        dates=["May 1999", "June 2001"],
    )

    assert values(result, "years") == ["1999", "2001"]


def test_regexp_replace(run_config):
    result = run_config(
        r"""
        <def var="masked">
            <regexp replace="true">
                <regexp-pattern>\d</regexp-pattern>
                <regexp-source>a1b2</regexp-source>
                <regexp-result>#</regexp-result>
            </regexp>
        </def>
        """
    )

    assert value(result, "masked") == "a#b#"


def test_regexp_replace_max(run_config):
    result = run_config(
        r"""
        <def var="masked">
            <regexp replace="true" max="1">
                <regexp-pattern>\d</regexp-pattern>
                <regexp-source>a1b2</regexp-source>
                <regexp-result>#</regexp-result>
            </regexp>
        </def>
        """
    )

    assert value(result, "masked") == "a#b2"


@pytest.mark.parametrize("replace", ["false", "true"])
def test_regexp_max_zero_means_no_limit(run_config, replace):
    result = run_config(
        rf"""
        <def var="out">
            <regexp replace="{replace}" max="0">
                <regexp-pattern>\d</regexp-pattern>
                <regexp-source>a1b2</regexp-source>
                <regexp-result>#</regexp-result>
            </regexp>
        </def>
        """
    )

    expected = ["a#b#"] if replace == "true" else ["#", "#"]
    assert values(result, "out") == expected


def test_regexp_case_insensitive_flag(run_config):
    result = run_config(
        """
        <def var="found">
            <regexp flag-caseinsensitive="true">
                <regexp-pattern>dune</regexp-pattern>
                <regexp-source>DUNE and Dune</regexp-source>
            </regexp>
        </def>
        """
    )

    assert values(result, "found") == ["DUNE", "Dune"]


def test_regexp_invalid_pattern(run_config):
    with pytest.raises(ProcessorException, match="Invalid regular expression"):
        run_config(
            "<regexp><regexp-pattern>(</regexp-pattern>"
            "<regexp-source>x</regexp-source></regexp>"
        )


# =============================================================================
# tokenize
# =============================================================================


def test_tokenize_trims_and_drops_blank_items(run_config):
    result = run_config(
        '<def var="t"><tokenize delimiters=",;"> a, b,,c ;d</tokenize></def>'
    )

    assert values(result, "t") == ["a", "b", "c", "d"]


def test_tokenize_allow_empty_items(run_config):
    result = run_config(
        '<def var="t">'
        '<tokenize delimiters="," allowemptyitems="true">a,,b</tokenize>'
        "</def>"
    )

    assert values(result, "t") == ["a", "", "b"]


def test_tokenize_without_trim(run_config):
    result = run_config(
        '<def var="t"><tokenize delimiters="," trimall="false">a, b</tokenize></def>'
    )

    assert values(result, "t") == ["a", " b"]


def test_tokenize_default_delimiters(run_config):
    result = run_config(
        '<def var="t"><tokenize><get var="text"/></tokenize></def>',
        text="one\ntwo\tthree",
    )

    assert values(result, "t") == ["one", "two", "three"]

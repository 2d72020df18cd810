"""Tests for the variable model and create_variable normalization."""

import pytest
from lxml import etree

from harvest.variables import (
    EMPTY,
    BinaryVariable,
    EmptyVariable,
    ListVariable,
    NodeVariable,
    create_variable,
    is_boolean_true,
)


@pytest.mark.parametrize("raw", [None, "", "   ", "\n\t"])
def test_blank_values_become_empty(raw):
    """None and blank strings normalize to the EMPTY singleton."""
    assert create_variable(raw) is EMPTY
    assert create_variable(raw).to_string() == ""


def test_empty_is_a_singleton():
    assert EmptyVariable() is EMPTY
    assert not EMPTY
    assert EMPTY.to_list() == []
    assert EMPTY.wrapped_object() is None


def test_scalar_becomes_node():
    variable = create_variable("Dune")

    assert isinstance(variable, NodeVariable)
    assert variable.to_string() == "Dune"
    assert variable.wrapped_object() == "Dune"


def test_create_variable_is_idempotent():
    """A non-empty variable passes through unchanged."""
    node = create_variable("x")
    items = create_variable(["a", "b"])

    assert create_variable(node) is node
    assert create_variable(items) is items
    assert create_variable(create_variable("")) is EMPTY


def test_empty_node_variable_normalizes_to_empty():
    assert create_variable(NodeVariable("  ")) is EMPTY


def test_collections_become_flat_lists():
    """Nested collections are flattened and blank items dropped."""
    variable = create_variable([1, [2, (3,)], None, "", ListVariable(["4"])])

    assert isinstance(variable, ListVariable)
    assert [item.to_string() for item in variable] == ["1", "2", "3", "4"]
    assert variable.to_string() == "1\n2\n3\n4"


def test_generators_become_lists():
    variable = create_variable(str(i) for i in range(3))

    assert isinstance(variable, ListVariable)
    assert len(variable) == 3


def test_empty_collection_becomes_empty():
    assert create_variable([]) is EMPTY
    assert create_variable([None, " "]) is EMPTY


def test_bytes_become_binary():
    variable = create_variable(b"\x89PNG")

    assert isinstance(variable, BinaryVariable)
    assert variable.to_bytes() == b"\x89PNG"
    assert variable.wrapped_object() == b"\x89PNG"


def test_list_keeps_explicit_blank_nodes():
    """Blank raw values are dropped but node variables are kept as given."""
    variable = ListVariable([NodeVariable("a"), NodeVariable(""), "", None])

    assert len(variable) == 2
    assert variable[1].to_string() == ""


def test_list_equality_is_element_wise_and_ordered():
    assert ListVariable(["a", "b"]) == ListVariable(["a", "b"])
    assert ListVariable(["a", "b"]) != ListVariable(["b", "a"])


def test_node_equality_compares_string_forms():
    assert NodeVariable(3) == NodeVariable("3")
    assert NodeVariable("a") != NodeVariable("b")


def test_number_and_boolean_string_forms():
    assert NodeVariable(3.0).to_string() == "3"
    assert NodeVariable(2.5).to_string() == "2.5"
    assert NodeVariable(True).to_string() == "true"
    assert NodeVariable(False).to_string() == "false"


def test_element_node_serializes_as_markup():
    element = etree.fromstring("<p>Hello <b>there</b></p>")[0]

    assert NodeVariable(element).to_string() == "<b>there</b>"


def test_wrapped_object_of_list():
    variable = create_variable(["a", 1])

    assert variable.wrapped_object() == ["a", 1]


def test_binary_decodes_with_charset():
    variable = BinaryVariable("café".encode("latin-1"))

    assert variable.to_string("latin-1") == "café"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("true", True),
        ("TRUE", True),
        (" yes ", True),
        ("1", True),
        (" 1\n", True),
        ("on", False),
        ("false", False),
        ("0", False),
        ("", False),
        (None, False),
    ],
)
def test_is_boolean_true(text, expected):
    assert is_boolean_true(text) is expected


def test_to_bool_uses_string_form():
    assert NodeVariable(True).to_bool()
    assert not NodeVariable("no").to_bool()

"""
Tests for rendering chain trees back to text and other forms.
"""
import json

import pytest

from chainlang.ast import CommandNode, SequentialNode
from chainlang.parser import parse
from chainlang.printer import format_tree, quote_arg, to_dict, to_string

ROUND_TRIP = [
    "/ns:a",
    "/ns:a x y >> /ns:b",
    "/ns:a >> /ns:b >> /ns:c",
    "/ns:a || /ns:b || /ns:c",
    "(/ns:a >> /ns:b) || /ns:c",
    "/ns:a >> (/ns:b & /ns:c)",
    "/ns:a |> /ns:b |> /ns:c",
    "/ns:a |> (/ns:b |> /ns:c)",
    "(/ns:a || /ns:b) |> /ns:c",
    "/ns:a & /ns:b & /ns:c",
    "/ns:a & (/ns:b & /ns:c)",
    "/ns:a ? /ns:b : /ns:c",
    "(/ns:a ? /ns:b : /ns:c) ? /ns:d : /ns:e",
    "/ns:a ? /ns:b : /ns:c ? /ns:d : /ns:e",
    "/ns:a ? /ns:b >> /ns:c : (/ns:d >> /ns:e)",
    "(/ns:a >> /ns:b) ? /ns:c : /ns:d",
    "/ns:say \"two words\" 'x >> y' \"(paren)\" '' \"/ns:fake\" >> /ns:b",
    "(/ns:analyze src || /ns:lint) >> /ns:fix ? /ns:test : /ns:rollback & /ns:notify",
]


@pytest.mark.parametrize("text", ROUND_TRIP)
def test_reparse_of_printed_form_has_same_shape(text):
    first = parse(text)
    printed = to_string(first)
    second = parse(printed)
    assert second.root == first.root
    # Printing is idempotent once canonical.
    assert to_string(second) == printed


def test_minimal_parentheses():
    assert to_string(parse("(/ns:a >> /ns:b) >> /ns:c")) == "/ns:a >> /ns:b >> /ns:c"
    assert to_string(parse("(/ns:a || /ns:b) >> /ns:c")) == "/ns:a || /ns:b >> /ns:c"
    assert to_string(parse("(/ns:a >> /ns:b) || /ns:c")) == "(/ns:a >> /ns:b) || /ns:c"


def test_quote_arg():
    assert quote_arg("plain") == "plain"
    assert quote_arg("two words") == '"two words"'
    assert quote_arg("") == '""'
    assert quote_arg('say "hi"') == '"say \\"hi\\""'
    assert quote_arg(":leading") == '":leading"'
    assert quote_arg("key:value") == "key:value"


def test_format_tree_outline():
    outline = format_tree(parse("/ns:a x >> (/ns:b || /ns:c)"))
    assert outline.splitlines() == [
        "Chain:",
        "  Sequential (>>):",
        "    Command: /ns:a x",
        "    Parallel (||):",
        "      Command: /ns:b",
        "      Command: /ns:c",
    ]


def test_format_tree_labels_conditional_and_background():
    outline = format_tree(parse("/ns:a ? /ns:b : /ns:c & /ns:d"))
    assert "if:" in outline and "then:" in outline and "else:" in outline
    assert "background:" in outline and "foreground:" in outline


def test_to_dict_is_json_ready():
    data = to_dict(parse("/ns:a x |> /ns:b"))
    assert json.loads(json.dumps(data)) == {
        "kind": "chain",
        "root": {
            "kind": "pipe",
            "source": {"kind": "command", "namespace": "ns", "name": "a", "args": ["x"]},
            "target": {"kind": "command", "namespace": "ns", "name": "b", "args": []},
        },
    }


def test_hand_built_nodes_render():
    node = SequentialNode((CommandNode("a", ("1",), "ops"), CommandNode("b", (), "ops")))
    assert to_string(node) == "/ops:a 1 >> /ops:b"

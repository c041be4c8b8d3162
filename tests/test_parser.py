"""
Unit tests for the chain parser.
Tests parse() and ParseError from chainlang.parser.
"""
import pytest

from chainlang.ast import (
    BackgroundNode,
    ChainNode,
    CommandNode,
    ConditionalNode,
    ParallelNode,
    PipeNode,
    SequentialNode,
    count_commands,
    tree_depth,
    walk,
)
from chainlang.errors import ParseError
from chainlang.lexer import tokenize
from chainlang.parser import ChainParser, compile_chain, parse


def cmd(name, *args, ns="ns"):
    return CommandNode(name, tuple(args), ns)


def test_parse_single_command():
    chain = parse("/ns:a one two")
    assert isinstance(chain, ChainNode)
    assert chain.root == cmd("a", "one", "two")
    assert chain.source == "/ns:a one two"


def test_parse_accepts_token_list():
    chain = parse(tokenize("/ns:a >> /ns:b"))
    assert chain.root == SequentialNode((cmd("a"), cmd("b")))


def test_sequential_chain_is_flattened():
    chain = parse("/ns:a >> /ns:b >> /ns:c")
    assert isinstance(chain.root, SequentialNode)
    assert chain.root.nodes == (cmd("a"), cmd("b"), cmd("c"))


def test_parallel_chain_is_flattened():
    chain = parse("/ns:a || /ns:b || /ns:c || /ns:d")
    assert isinstance(chain.root, ParallelNode)
    assert len(chain.root.nodes) == 4


def test_parenthesized_same_operator_is_spliced():
    chain = parse("/ns:a >> (/ns:b >> /ns:c)")
    assert chain.root.nodes == (cmd("a"), cmd("b"), cmd("c"))


def test_parallel_binds_tighter_than_sequential():
    chain = parse("/ns:a >> /ns:b || /ns:c >> /ns:d")
    assert chain.root == SequentialNode((
        cmd("a"),
        ParallelNode((cmd("b"), cmd("c"))),
        cmd("d"),
    ))


def test_pipe_binds_tighter_than_parallel():
    chain = parse("/ns:a |> /ns:b || /ns:c")
    assert chain.root == ParallelNode((PipeNode(cmd("a"), cmd("b")), cmd("c")))


def test_pipe_is_left_associative():
    chain = parse("/ns:a |> /ns:b |> /ns:c")
    assert chain.root == PipeNode(PipeNode(cmd("a"), cmd("b")), cmd("c"))


def test_background_binds_loosest():
    chain = parse("/ns:a >> /ns:b & /ns:c")
    assert chain.root == BackgroundNode(SequentialNode((cmd("a"), cmd("b"))), cmd("c"))


def test_conditional_binds_tightest():
    chain = parse("/ns:a ? /ns:b : /ns:c >> /ns:d")
    assert chain.root == SequentialNode((
        ConditionalNode(cmd("a"), cmd("b"), cmd("c")),
        cmd("d"),
    ))


def test_conditional_true_branch_may_be_any_expression():
    chain = parse("/ns:a ? /ns:b >> /ns:c : /ns:d")
    assert chain.root == ConditionalNode(cmd("a"), SequentialNode((cmd("b"), cmd("c"))), cmd("d"))


def test_conditional_false_branch_is_right_associative():
    chain = parse("/ns:a ? /ns:b : /ns:c ? /ns:d : /ns:e")
    assert chain.root == ConditionalNode(
        cmd("a"), cmd("b"), ConditionalNode(cmd("c"), cmd("d"), cmd("e"))
    )


def test_group_overrides_precedence():
    chain = parse("(/ns:a >> /ns:b) || /ns:c")
    assert chain.root == ParallelNode((SequentialNode((cmd("a"), cmd("b"))), cmd("c")))


def test_parenthesized_conditional():
    chain = parse("(/ns:a ? /ns:b : /ns:c)")
    assert isinstance(chain.root, ConditionalNode)


def test_flattened_children_keep_declaration_order():
    chain = parse("(/ns:a || /ns:b) || (/ns:c || /ns:d)")
    assert [n.name for n in chain.root.nodes] == ["a", "b", "c", "d"]


def test_missing_false_branch_mentions_colon():
    with pytest.raises(ParseError, match="':'"):
        parse("/ns:a ?")


def test_missing_colon_after_true_branch():
    with pytest.raises(ParseError, match="':'") as exc:
        parse("/ns:a ? /ns:b")
    assert exc.value.position == len("/ns:a ? /ns:b")


def test_unbalanced_open_group():
    with pytest.raises(ParseError, match="Unbalanced") as exc:
        parse("(/ns:a >> /ns:b")
    assert exc.value.position == 0


def test_unbalanced_close_group():
    with pytest.raises(ParseError, match="Unbalanced") as exc:
        parse("/ns:a >> /ns:b)")
    assert exc.value.position == 14


def test_trailing_tokens_are_rejected():
    with pytest.raises(ParseError, match="Unexpected token"):
        parse("/ns:a : /ns:b")


def test_dangling_operator():
    with pytest.raises(ParseError, match="end of input"):
        parse("/ns:a >>")


def test_leading_operator():
    with pytest.raises(ParseError) as exc:
        parse(">> /ns:a")
    assert exc.value.position == 0


@pytest.mark.parametrize("text", ["", "   ", "no commands here"])
def test_empty_chain(text):
    with pytest.raises(ParseError, match="Empty chain"):
        parse(text)


def test_empty_group():
    with pytest.raises(ParseError):
        parse("()")


def test_parser_class_reports_end_position_without_source():
    tokens = tokenize("/ns:a >>")
    with pytest.raises(ParseError) as exc:
        ChainParser(tokens).parse()
    assert exc.value.position == 8


def test_compile_chain_respects_namespace():
    chain = compile_chain("/dev:a >> /dev:b", namespace="dev")
    assert [n.namespace for n in chain.root.nodes] == ["dev", "dev"]
    with pytest.raises(ParseError):
        compile_chain("/ops:a >> /ops:b", namespace="dev")


def test_ast_is_immutable():
    chain = parse("/ns:a >> /ns:b")
    with pytest.raises(AttributeError):
        chain.root.nodes = ()


def test_tree_helpers():
    chain = parse("/ns:a >> (/ns:b || /ns:c) ? /ns:d : /ns:e")
    kinds = [n.kind for n in walk(chain)]
    assert kinds[:2] == ["chain", "sequential"]
    assert kinds.count("command") == 5
    assert count_commands(chain) == 5
    # chain -> sequential -> conditional -> parallel -> command; the wrapper is not counted
    assert tree_depth(chain) == 4
    assert tree_depth(CommandNode("a")) == 1


def test_end_position_covers_command_prefix_and_args():
    tokens = tokenize('/ns:a ? /ns:b arg "two words"')
    assert tokens[-1].end == 29
    with pytest.raises(ParseError) as exc:
        ChainParser(tokens).parse()
    assert exc.value.position == 29

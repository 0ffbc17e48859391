import pytest

from predictive import (
    Grammar,
    GrammarError,
    NonTerminal,
    Nothing,
    Production,
    Terminal,
    alt,
    opt,
    parse,
    parse_grammar,
    rule,
    seq,
)
from predictive.examples import PARENS_TERMINALS, parens_grammar
from predictive.grammar import FirstInfo

S = NonTerminal("S")
T = NonTerminal("T")
LPAR = Terminal("LPAR", "(")
RPAR = Terminal("RPAR", ")")
PLUS = Terminal("PLUS", "+")
A = Terminal("A", "a")


def test_productions_are_numbered_in_order():
    g = Grammar(
        [
            (S, [T]),
            (S, [LPAR, S, PLUS, T, RPAR]),
            (T, [A]),
        ]
    )

    assert len(g) == 3
    assert [p.number for p in g] == [1, 2, 3]
    assert g.start == S
    assert g.production(2) == Production(S, (LPAR, S, PLUS, T, RPAR), 2)
    assert [p.number for p in g.productions_for(S)] == [1, 2]
    assert [p.number for p in g.productions_for("T")] == [3]


def test_production_lookup_is_one_based():
    g = parens_grammar()
    assert g.production(1).format() == "S -> T"
    with pytest.raises(IndexError):
        g.production(0)
    with pytest.raises(IndexError):
        g.production(4)


def test_symbols_compare_by_value():
    assert Terminal("A", "a") == A
    assert NonTerminal("S") == S
    assert Terminal("S") != NonTerminal("S")
    assert len({Terminal("A", "a"), A}) == 1


def test_parse_grammar_matches_hand_built():
    g = parens_grammar()
    assert g.productions == (
        Production(S, (T,), 1),
        Production(S, (LPAR, S, PLUS, T, RPAR), 2),
        Production(T, (A,), 3),
    )
    assert g.format() == "1: S -> T\n2: S -> ( S + T )\n3: T -> a"
    assert g.format_rule(2) == "S -> ( S + T )"
    assert {t.name for t in g.terminals()} == {"LPAR", "RPAR", "PLUS", "A"}
    assert g.non_terminals() == [S, T]


def test_parse_grammar_without_terminal_names():
    g = parse_grammar("S -> T | (S+T)\nT -> a")
    assert [t.name for t in g.terminals()] == ["(", "+", ")", "a"]
    assert parse(g, "((a+a)+a)").trace == [2, 2, 1, 3, 3, 3]


def test_parse_grammar_layout():
    g = parse_grammar(
        """
        # statements
        stmt → if expr then stmt
             | print expr

        expr -> id
        """,
        name="statements",
    )

    assert g.name == "statements"
    assert [p.format() for p in g] == [
        "stmt -> if expr then stmt",
        "stmt -> print expr",
        "expr -> id",
    ]
    assert parse(g, "if id then print id").trace == [1, 3, 2, 3]


def test_parse_grammar_empty_alternatives():
    g = parse_grammar("L -> x L | \nM -> eps | y")
    assert [p.format() for p in g] == ["L -> x L", "L -> ε", "M -> ε", "M -> y"]


def test_parse_grammar_errors():
    with pytest.raises(GrammarError):
        parse_grammar("")
    with pytest.raises(GrammarError, match="line 1"):
        parse_grammar("S T")
    with pytest.raises(GrammarError, match="line 1"):
        parse_grammar("| a")
    with pytest.raises(GrammarError, match="not a valid rule name"):
        parse_grammar("( -> a")
    with pytest.raises(GrammarError, match="unexpected"):
        parse_grammar("S -> a -> b")
    with pytest.raises(GrammarError, match="Start symbol"):
        parse_grammar("S -> a", start="X")


def test_grammar_errors():
    with pytest.raises(GrammarError):
        Grammar([])
    with pytest.raises(GrammarError, match="no productions"):
        Grammar([(S, [T])])
    with pytest.raises(GrammarError, match="both named"):
        Grammar([(S, [Terminal("S")])])
    with pytest.raises(GrammarError, match="more than one terminal"):
        Grammar([(S, [Terminal("A", "a"), Terminal("A", "b")])])
    with pytest.raises(GrammarError, match="reserved"):
        Grammar([(S, [Terminal("END")])])
    with pytest.raises(GrammarError, match="No rule named"):
        parens_grammar().productions_for("X")


def test_lexer_rejects_shared_text():
    g = Grammar([(S, [Terminal("X", "x"), Terminal("Y", "x")])])
    with pytest.raises(GrammarError, match="share the text"):
        g.lexer()


def test_first_sets():
    g = parens_grammar()
    assert g.first([S]) == (frozenset({"A", "LPAR"}), False)
    assert g.first([T, PLUS]) == (frozenset({"A"}), False)
    assert g.first([]) == (frozenset(), True)


def test_first_sets_with_empty_rules():
    x, y, z = NonTerminal("x"), NonTerminal("y"), NonTerminal("z")
    a, b, c = Terminal("A"), Terminal("B"), Terminal("C")

    info = FirstInfo.from_productions(
        Grammar(
            [
                (x, [y, a]),
                (y, [z]),
                (y, [b, x]),
                (y, []),
                (z, [c]),
            ]
        ).productions
    )

    assert info.firsts == {
        "x": frozenset({"A", "B", "C"}),
        "y": frozenset({"B", "C"}),
        "z": frozenset({"C"}),
    }
    assert info.is_epsilon == {"x": False, "y": True, "z": False}


def test_first_sets_survive_left_recursion():
    g = parse_grammar("E -> E + n | n")
    assert g.first([NonTerminal("E")]) == (frozenset({"n"}), False)


def test_rules_from_functions():
    LPAR = Terminal("LPAR", "(")
    RPAR = Terminal("RPAR", ")")
    PLUS = Terminal("PLUS", "+")
    A = Terminal("A", "a")

    @rule
    def S():
        return T | seq(LPAR, S, PLUS, T, RPAR)

    @rule
    def T():
        return A

    g = Grammar.from_rules(S, name="parens")
    assert g.productions == parens_grammar().productions
    assert parse(g, "((a+a)+a)").trace == [2, 2, 1, 3, 3, 3]


def test_rule_sugar_flattens_in_order():
    NUM = Terminal("NUM", "1")
    PLUS = Terminal("PLUS", "+")
    MINUS = Terminal("MINUS", "-")

    @rule("expr")
    def expression():
        return NUM + rest

    @rule
    def rest():
        return seq(alt(PLUS, MINUS), NUM, rest) | Nothing

    @rule
    def maybe():
        return opt(NUM, PLUS) + NUM

    g = Grammar.from_rules(expression)
    assert [p.format() for p in g] == [
        "expr -> 1 rest",
        "rest -> + 1 rest",
        "rest -> - 1 rest",
        "rest -> ε",
    ]
    assert parse(g, "1+1-1", require_full_consumption=True).trace == [1, 2, 3, 4]

    assert [[s.name for s in body] for body in maybe.body] == [
        ["NUM", "PLUS", "NUM"],
        ["NUM"],
    ]


def test_rules_with_the_same_name():
    X = Terminal("X", "x")

    @rule("dup")
    def first():
        return X + second

    @rule("dup")
    def second():
        return X

    with pytest.raises(GrammarError, match="more than one rule named dup"):
        Grammar.from_rules(first)


def test_example_terminal_names():
    assert PARENS_TERMINALS == {"(": "LPAR", ")": "RPAR", "+": "PLUS", "a": "A"}

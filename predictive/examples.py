"""The little grammar everybody starts with: balanced sums of `a`.

    1: S -> T
    2: S -> ( S + T )
    3: T -> a
"""

from .grammar import Grammar, parse_grammar

PARENS_GRAMMAR = """
S -> T | (S+T)
T -> a
"""

PARENS_TERMINALS = {"(": "LPAR", ")": "RPAR", "+": "PLUS", "a": "A"}


def parens_grammar() -> Grammar:
    return parse_grammar(PARENS_GRAMMAR, terminals=PARENS_TERMINALS, name="parens")

"""A predictive (LL(1)) recursive-descent parsing engine.

Give it a grammar and some input and it will tell you which rules derive the
input, in order, or exactly where and why it doesn't:

    from predictive import parse, parse_grammar

    g = parse_grammar("S -> T | (S+T)\\nT -> a")
    parse(g, "((a+a)+a)").trace   # [2, 2, 1, 3, 3, 3]
"""

from .errors import GrammarError, LexError, PredictiveError
from .grammar import (
    Grammar,
    NonTerminal,
    Nothing,
    Production,
    Rule,
    Symbol,
    Terminal,
    alt,
    opt,
    parse_grammar,
    rule,
    seq,
)
from .lexer import END, INVALID, Lexer, Token, TokenList, TokenSource
from .runtime import (
    CallEvent,
    EventKind,
    ParseContext,
    ParseResult,
    ParseSyntaxError,
    Parser,
    TokenStream,
    parse,
    traced,
)

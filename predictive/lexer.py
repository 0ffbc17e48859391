"""A small literal-pattern lexer.

The parsing engine does not care where its tokens come from, only that it can
ask for them one at a time. Anything with a `next_token(source, position)`
method that returns the next token and the new position will do (see
`TokenSource`). This module provides two of those: `Lexer`, which chops a
string into tokens using the literal text of each terminal, and `TokenList`,
which replays tokens somebody else already produced.
"""

import dataclasses
import logging
import typing

from .errors import GrammarError, LexError

# Reserved token kinds. No terminal may use these names.
END = "END"
INVALID = "INVALID"


@dataclasses.dataclass(frozen=True)
class Token:
    kind: str
    value: str
    start: int
    end: int

    def describe(self) -> str:
        """A short human-readable form, e.g. `RPAR ')'`."""
        if self.kind == END:
            return "end of input"
        if self.value and self.value != self.kind:
            return f"{self.kind} {self.value!r}"
        return self.kind


# What the stream holds before anything has been read.
INVALID_TOKEN = Token(kind=INVALID, value="", start=0, end=0)


lexer_log = logging.getLogger("predictive.lexer")


class TokenSource(typing.Protocol):
    def next_token(self, source: typing.Any, position: int) -> typing.Tuple[Token, int]:
        """Read the token at `position` in `source`, returning the token and
        the position just after it. At the end of the source this must return
        an END token (and keep doing so if asked again).
        """
        ...


class Lexer:
    """Turns text into tokens by matching the literal text of each terminal.

    `patterns` maps the literal text of a terminal to its token kind, e.g.
    `{"(": "LPAR", "a": "A"}`. When more than one pattern matches at a
    position the longest one wins. Characters in `ignore` are skipped between
    tokens.
    """

    patterns: dict[str, str]
    ignore: str
    _ordered: list[typing.Tuple[str, str]]

    def __init__(self, patterns: typing.Mapping[str, str], ignore: str = " \t\r\n"):
        for text, kind in patterns.items():
            if len(text) == 0:
                raise GrammarError(f"Terminal {kind} has an empty pattern")
            if kind in (END, INVALID):
                raise GrammarError(f"{kind} is a reserved token kind")

        self.patterns = dict(patterns)
        self.ignore = ignore

        # Longest first, so the first hit is the longest match.
        self._ordered = sorted(self.patterns.items(), key=lambda x: len(x[0]), reverse=True)

    def next_token(self, source: str, position: int) -> typing.Tuple[Token, int]:
        while position < len(source) and source[position] in self.ignore:
            position += 1

        if position >= len(source):
            return (Token(kind=END, value="", start=position, end=position), position)

        for text, kind in self._ordered:
            if source.startswith(text, position):
                end = position + len(text)
                token = Token(kind=kind, value=text, start=position, end=end)
                if lexer_log.isEnabledFor(logging.DEBUG):
                    lexer_log.debug("%d: %s", position, token.describe())
                return (token, end)

        raise LexError(f"Token error at {position}: unexpected {source[position]!r}", position)

    def tokenize(self, source: str) -> list[Token]:
        """Lex the whole of `source`. The result always ends with END."""
        tokens = []
        position = 0
        while True:
            token, position = self.next_token(source, position)
            tokens.append(token)
            if token.kind == END:
                return tokens


class TokenList:
    """A `TokenSource` over tokens that have already been produced.

    The position is an index into the sequence. Running off the end yields an
    END token placed just after the last real token, so the sequence does not
    need to carry its own END (though it may).
    """

    def next_token(
        self, source: typing.Sequence[Token], position: int
    ) -> typing.Tuple[Token, int]:
        if position < len(source):
            return (source[position], position + 1)

        eof = 0 if len(source) == 0 else source[-1].end
        return (Token(kind=END, value="", start=eof, end=eof), position)

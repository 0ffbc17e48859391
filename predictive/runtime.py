"""The predictive recursive-descent engine.

There are no tables here. Each nonterminal gets a small prediction (which of
its alternatives does a given lookahead token pick?), built once from the
grammar, and parsing is just:

    - look at the current token,
    - pick an alternative for the nonterminal we're expanding,
    - walk that alternative left to right, matching terminals against the
      token stream and recursing into nonterminals.

Every production we commit to gets its number appended to the trace, outer
rules before inner ones, so the trace is the pre-order walk of the
derivation tree. The first mismatch raises `ParseSyntaxError` and the whole
parse unwinds; there is no recovery.
"""

import dataclasses
import enum
import functools
import logging
import typing

from . import grammar
from .errors import PredictiveError
from .lexer import END, INVALID, INVALID_TOKEN, Lexer, Token, TokenList, TokenSource

# What the parser expects after the start symbol when it has to see the
# whole input.
END_OF_INPUT = grammar.Terminal(END, "")


class ParseSyntaxError(PredictiveError):
    """The input does not derive from the start symbol.

    `expected` is the terminal the matcher wanted or the nonterminal for
    which no alternative fit the lookahead. `actual` is the token that was
    there instead and `position` is its index in the token stream (0 is the
    first token). `trace` holds the rules applied before things went wrong.
    """

    expected: grammar.Symbol
    actual: Token
    position: int
    choices: typing.Tuple[str, ...]
    trace: list[int]

    def __init__(
        self,
        expected: grammar.Symbol,
        actual: Token,
        position: int,
        trace: list[int] | None = None,
        choices: typing.Iterable[str] = (),
    ):
        self.expected = expected
        self.actual = actual
        self.position = position
        self.choices = tuple(sorted(choices))
        self.trace = list(trace or [])
        super().__init__(self.format())

    def format(self) -> str:
        where = f"at token {self.position} (offset {self.actual.start})"
        if isinstance(self.expected, grammar.Terminal):
            if self.expected.name == END:
                wanted = "end of input"
            else:
                wanted = self.expected.name
            return f"Syntax Error: expected {wanted}, got {self.actual.describe()} {where}"

        message = (
            f"Syntax Error: unexpected {self.actual.describe()} while parsing "
            f"{self.expected.name} {where}"
        )
        if len(self.choices) > 0:
            message = f"{message}. (Expected one of {', '.join(self.choices)}.)"
        return message


class TokenStream:
    """The tokenizer state for one parse: the unconsumed input and the
    current lookahead token.

    Before the first `advance` the current token is the INVALID sentinel.
    Once the END token has been read, `advance` keeps returning it without
    asking the token source for anything else.
    """

    _lexer: TokenSource
    _source: typing.Any
    _position: int
    _current: Token
    _index: int

    def __init__(self, lexer: TokenSource, source: typing.Any):
        self._lexer = lexer
        self._source = source
        self._position = 0
        self._current = INVALID_TOKEN
        self._index = -1

    @property
    def current(self) -> Token:
        return self._current

    @property
    def index(self) -> int:
        """The position of the current token in the stream; -1 before the
        first advance."""
        return self._index

    def advance(self) -> Token:
        if self._current.kind == END:
            return self._current

        self._current, self._position = self._lexer.next_token(self._source, self._position)
        self._index += 1
        return self._current


@dataclasses.dataclass
class ParseContext:
    """Everything that changes while a single parse runs."""

    stream: TokenStream
    trace: list[int] = dataclasses.field(default_factory=list)
    depth: int = 0


@dataclasses.dataclass(frozen=True)
class ParseResult:
    trace: list[int]
    token: Token

    @property
    def at_end(self) -> bool:
        """True if the derivation consumed the whole input."""
        return self.token.kind == END


###############################################################################
# Verbose call tracing
###############################################################################
class EventKind(enum.Enum):
    CALL = "call"
    RETURN = "return"
    ERROR = "error"


@dataclasses.dataclass(frozen=True)
class CallEvent:
    kind: EventKind
    procedure: str
    symbol: str
    token: Token
    depth: int

    def format(self) -> str:
        return "{indent}{kind: <6} {procedure} {symbol} [{token}]".format(
            indent="  " * self.depth,
            kind=self.kind.value,
            procedure=self.procedure,
            symbol=self.symbol,
            token=self.token.describe(),
        )


call_log = logging.getLogger("predictive.call")
trace_log = logging.getLogger("predictive.trace")

Procedure = typing.Callable[[typing.Any, ParseContext], typing.Any]


def traced(
    name: str, procedure: Procedure, sink: typing.Callable[[CallEvent], None]
) -> Procedure:
    """Wrap a dispatch or match procedure so that every invocation reports a
    CALL event on the way in and a RETURN (or ERROR) event on the way out,
    each carrying the current token at that moment.
    """

    @functools.wraps(procedure)
    def wrapper(symbol, context: ParseContext):
        sink(CallEvent(EventKind.CALL, name, symbol.name, context.stream.current, context.depth))
        context.depth += 1
        try:
            result = procedure(symbol, context)
        except PredictiveError:
            context.depth -= 1
            sink(
                CallEvent(EventKind.ERROR, name, symbol.name, context.stream.current, context.depth)
            )
            raise

        context.depth -= 1
        sink(CallEvent(EventKind.RETURN, name, symbol.name, context.stream.current, context.depth))
        return result

    return wrapper


###############################################################################
# Prediction
###############################################################################
@dataclasses.dataclass(frozen=True)
class Prediction:
    """How to pick one of a nonterminal's productions from the lookahead.

    A nonterminal with one production always gets it; the lookahead is not
    even examined. Otherwise the first alternative (in declaration order)
    whose first set holds the lookahead wins, and failing that the first
    alternative that can derive the empty string.
    """

    alternatives: typing.Tuple[typing.Tuple[frozenset[str], grammar.Production], ...]
    fallback: grammar.Production | None

    @classmethod
    def from_grammar(cls, g: grammar.Grammar, nonterminal: grammar.NonTerminal) -> "Prediction":
        alternatives = []
        fallback = None
        for production in g.productions_for(nonterminal):
            firsts, is_epsilon = g.first(production.body)
            alternatives.append((firsts, production))
            if is_epsilon and fallback is None:
                fallback = production
        return Prediction(alternatives=tuple(alternatives), fallback=fallback)

    def choose(self, lookahead: Token) -> grammar.Production | None:
        if len(self.alternatives) == 1:
            return self.alternatives[0][1]

        for firsts, production in self.alternatives:
            if lookahead.kind in firsts:
                return production
        return self.fallback

    def choices(self) -> set[str]:
        result: set[str] = set()
        for firsts, _ in self.alternatives:
            result.update(firsts)
        return result


###############################################################################
# The parser
###############################################################################
class Parser:
    """A recursive-descent parser for one grammar.

    A parser can run any number of parses, one after another; each `parse`
    call gets its own `TokenStream` and `ParseContext`, and the grammar is
    only ever read.

    `require_full_consumption` makes the parse fail unless the start symbol's
    derivation ends exactly at the end of the input; without it a parse that
    derives a prefix of the input succeeds.

    `trace` is called with each rule number as the rule is applied. With
    `verbose`, every dispatch and match reports call and return events to the
    `predictive.call` logger and to `on_event`.
    """

    grammar: grammar.Grammar
    start: grammar.NonTerminal
    require_full_consumption: bool
    verbose: bool

    def __init__(
        self,
        g: grammar.Grammar,
        start: grammar.NonTerminal | str | None = None,
        *,
        require_full_consumption: bool = False,
        verbose: bool = False,
        trace: typing.Callable[[int], None] | None = None,
        on_event: typing.Callable[[CallEvent], None] | None = None,
    ):
        if start is None:
            start = g.start
        elif isinstance(start, str):
            start = grammar.NonTerminal(start)
        # Raises if the start symbol has no productions.
        g.productions_for(start)

        self.grammar = g
        self.start = start
        self.require_full_consumption = require_full_consumption
        self.verbose = verbose
        self._trace_sink = trace
        self._event_sink = on_event
        self._lexer: Lexer | None = None
        self._predictions = {
            nt.name: Prediction.from_grammar(g, nt) for nt in g.non_terminals()
        }

        self._dispatch: Procedure = self._dispatch_nonterminal
        self._match: Procedure = self._match_terminal
        if verbose:
            self._dispatch = traced("dispatch", self._dispatch, self._emit_event)
            self._match = traced("match", self._match, self._emit_event)

    def stream(self, source: str | typing.Sequence[Token]) -> TokenStream:
        """A fresh token stream over a string (lexed with the grammar's own
        lexer) or over tokens that have already been produced."""
        if isinstance(source, str):
            if self._lexer is None:
                self._lexer = self.grammar.lexer()
            return TokenStream(self._lexer, source)
        return TokenStream(TokenList(), source)

    def parse(self, source: str | typing.Sequence[Token] | TokenStream) -> ParseResult:
        """Parse the source from the start symbol and return the trace of
        rules applied. Raises ParseSyntaxError at the first token that does
        not fit.

        A `TokenStream` that has already been read from is parsed from its
        current token; only a fresh one is primed.
        """
        stream = source if isinstance(source, TokenStream) else self.stream(source)
        if stream.current.kind == INVALID:
            stream.advance()
        context = ParseContext(stream=stream)

        self._dispatch(self.start, context)

        if self.require_full_consumption and stream.current.kind != END:
            raise ParseSyntaxError(
                expected=END_OF_INPUT,
                actual=stream.current,
                position=stream.index,
                trace=context.trace,
            )

        return ParseResult(trace=context.trace, token=stream.current)

    def dispatch(self, nonterminal: grammar.NonTerminal, context: ParseContext):
        """Expand `nonterminal` at the current position of the stream."""
        self._dispatch(nonterminal, context)

    def match(self, expected: grammar.Terminal, context: ParseContext) -> Token:
        """Consume the current token if it is `expected`, and return it."""
        return self._match(expected, context)

    def _dispatch_nonterminal(self, nonterminal: grammar.NonTerminal, context: ParseContext):
        stream = context.stream
        prediction = self._predictions[nonterminal.name]
        production = prediction.choose(stream.current)
        if production is None:
            raise ParseSyntaxError(
                expected=nonterminal,
                actual=stream.current,
                position=stream.index,
                trace=context.trace,
                choices=prediction.choices(),
            )

        body = production.body
        if len(body) > 0 and isinstance(body[0], grammar.Terminal):
            # The rule is only recorded once its leading terminal is really
            # there.
            self._match(body[0], context)
            self._record(production, context)
            body = body[1:]
        else:
            self._record(production, context)

        for symbol in body:
            if isinstance(symbol, grammar.Terminal):
                self._match(symbol, context)
            else:
                self._dispatch(symbol, context)

    def _match_terminal(self, expected: grammar.Terminal, context: ParseContext) -> Token:
        stream = context.stream
        token = stream.current
        if token.kind != expected.name:
            raise ParseSyntaxError(
                expected=expected,
                actual=token,
                position=stream.index,
                trace=context.trace,
            )
        stream.advance()
        return token

    def _record(self, production: grammar.Production, context: ParseContext):
        context.trace.append(production.number)
        if trace_log.isEnabledFor(logging.DEBUG):
            trace_log.debug("%d: %s", production.number, production.format())
        if self._trace_sink is not None:
            self._trace_sink(production.number)

    def _emit_event(self, event: CallEvent):
        if call_log.isEnabledFor(logging.INFO):
            call_log.info(event.format())
        if self._event_sink is not None:
            self._event_sink(event)


def parse(
    g: grammar.Grammar,
    source: str | typing.Sequence[Token],
    start: grammar.NonTerminal | str | None = None,
    **kwargs,
) -> ParseResult:
    """Parse the source with the grammar. Keyword arguments go to `Parser`."""
    return Parser(g, start, **kwargs).parse(source)

"""Grammars for a predictive, recursive-descent parser.

A grammar here is nothing fancier than an ordered list of productions, each
one a nonterminal (the head) and the sequence of symbols it expands to (the
body). Productions are numbered from 1 in the order they were declared; the
numbers exist so that a parse can report which rules it applied, and the
parser never uses them to make a decision.

There are three ways to make one.

Directly, from symbols:

    S = NonTerminal("S")
    T = NonTerminal("T")
    LPAR = Terminal("LPAR", "(")
    ...
    grammar = Grammar([
        (S, [T]),
        (S, [LPAR, S, PLUS, T, RPAR]),
        (T, [A]),
    ])

From arrow notation:

    grammar = parse_grammar(
        '''
        S -> T | (S+T)
        T -> a
        ''',
        terminals={"(": "LPAR", ")": "RPAR", "+": "PLUS", "a": "A"},
    )

Or from Python functions, with the `@rule` decorator:

    @rule
    def S():
        return T | seq(LPAR, S, PLUS, T, RPAR)

    @rule
    def T():
        return A

    grammar = Grammar.from_rules(S)

All three produce the same thing. Nothing here checks that the grammar is
actually LL(1): left recursion will blow the stack and overlapping
alternatives will quietly pick the first one. That's on you.
"""

import abc
import collections
import dataclasses
import inspect
import re
import typing

from .errors import GrammarError
from .lexer import END, INVALID, Lexer


###############################################################################
# Symbols and productions
###############################################################################
class Rule:
    """A token (terminal), a rule function (nonterminal), or some combination
    thereof. Rules are composed with `|` and `+` and then flattened into
    productions.
    """

    def __or__(self, other) -> "Rule":
        return AlternativeRule(self, other)

    def __add__(self, other) -> "Rule":
        return SequenceRule(self, other)

    @abc.abstractmethod
    def flatten(self) -> typing.Generator[list["Terminal | RuleDefinition"], None, None]:
        """Convert this potentially nested and branching set of rules into a
        series of flat symbol lists, one per alternative.

        e.g., if this rule is (X + (A | (B + C | D))) then flattening will
        yield:

            [X, A]
            [X, B, C]
            [X, D]
        """
        raise NotImplementedError()


@dataclasses.dataclass(frozen=True)
class Terminal(Rule):
    """A terminal symbol. `name` is the token kind it matches; `pattern` is
    the literal text a lexer should recognize for it, if different from the
    name.
    """

    name: str
    pattern: str | None = None

    @property
    def text(self) -> str:
        return self.pattern if self.pattern is not None else self.name

    def flatten(self) -> typing.Generator[list["Terminal | RuleDefinition"], None, None]:
        yield [self]


@dataclasses.dataclass(frozen=True)
class NonTerminal:
    """A nonterminal symbol, known only by its name."""

    name: str


Symbol = Terminal | NonTerminal


@dataclasses.dataclass(frozen=True)
class Production:
    head: NonTerminal
    body: typing.Tuple[Symbol, ...]
    number: int = 0

    def format(self) -> str:
        if len(self.body) == 0:
            bits = "ε"
        else:
            bits = " ".join(s.text if isinstance(s, Terminal) else s.name for s in self.body)
        return f"{self.head.name} -> {bits}"

    def __str__(self) -> str:
        return self.format()


###############################################################################
# First sets
###############################################################################
def update_changed(items: set[str], other: typing.Iterable[str]) -> bool:
    """Merge the `other` set into the `items` set, and return True if this
    changed the items set.
    """
    old_len = len(items)
    items.update(other)
    return old_len != len(items)


@dataclasses.dataclass(frozen=True)
class FirstInfo:
    """The first set of every nonterminal in a grammar (FIRST, in the
    textbooks).

    firsts[n] is the set of terminal names that can begin a derivation of the
    nonterminal named n. is_epsilon[n] is True if n can derive the empty
    string.

    For example, in

        x -> y A
        y -> z
        y -> B x
        y ->
        z -> C

    FIRST[z] is {C}, FIRST[y] is {B, C} (and y can be empty), and FIRST[x] is
    {A, B, C}: the A gets in because y, which comes before it, can be empty.
    """

    firsts: dict[str, frozenset[str]]
    is_epsilon: dict[str, bool]

    @classmethod
    def from_productions(cls, productions: typing.Sequence[Production]) -> "FirstInfo":
        firsts: dict[str, set[str]] = {p.head.name: set() for p in productions}
        epsilons = {name: False for name in firsts}

        # Mutually recursive rules mean naive recursion never ends, so iterate
        # to a fixed point instead.
        changed = True
        while changed:
            changed = False
            for production in productions:
                name = production.head.name
                f = firsts[name]
                if len(production.body) == 0:
                    changed = changed or not epsilons[name]
                    epsilons[name] = True
                    continue

                for index, symbol in enumerate(production.body):
                    if isinstance(symbol, Terminal):
                        changed = update_changed(f, (symbol.name,)) or changed
                        break

                    changed = update_changed(f, firsts[symbol.name]) or changed

                    is_last = index == len(production.body) - 1
                    if is_last and epsilons[symbol.name]:
                        # Every symbol in the body can be empty, so this
                        # nonterminal can be empty too.
                        changed = changed or not epsilons[name]
                        epsilons[name] = True

                    if not epsilons[symbol.name]:
                        break

        return FirstInfo(
            firsts={name: frozenset(f) for name, f in firsts.items()},
            is_epsilon=epsilons,
        )

    def first(self, symbols: typing.Iterable[Symbol]) -> typing.Tuple[frozenset[str], bool]:
        """The first set of a sequence of symbols, and whether the whole
        sequence can be empty.
        """
        result: set[str] = set()
        for symbol in symbols:
            if isinstance(symbol, Terminal):
                result.add(symbol.name)
                return (frozenset(result), False)

            result.update(self.firsts[symbol.name])
            if not self.is_epsilon[symbol.name]:
                return (frozenset(result), False)

        return (frozenset(result), True)


###############################################################################
# The grammar
###############################################################################
ProductionSpec = Production | typing.Tuple[NonTerminal, typing.Sequence[Symbol]]


class Grammar:
    """An ordered, immutable collection of productions.

    The productions are renumbered 1..N in the order given. The start symbol
    defaults to the head of the first production.
    """

    productions: typing.Tuple[Production, ...]
    start: NonTerminal
    name: str
    _by_head: dict[str, typing.Tuple[Production, ...]]
    _terminals: dict[str, Terminal]
    _first: FirstInfo

    def __init__(
        self,
        productions: typing.Iterable[ProductionSpec],
        start: NonTerminal | str | None = None,
        name: str | None = None,
    ):
        numbered: list[Production] = []
        for item in productions:
            if isinstance(item, Production):
                head, body = item.head, item.body
            else:
                head, body = item
            numbered.append(Production(head=head, body=tuple(body), number=len(numbered) + 1))

        if len(numbered) == 0:
            raise GrammarError("A grammar needs at least one production")

        by_head: dict[str, list[Production]] = {}
        for production in numbered:
            by_head.setdefault(production.head.name, []).append(production)

        terminals: dict[str, Terminal] = {}
        for production in numbered:
            for symbol in production.body:
                if isinstance(symbol, NonTerminal):
                    if symbol.name not in by_head:
                        raise GrammarError(
                            f"Rule {production.number} ({production}) refers to "
                            f"{symbol.name}, which has no productions"
                        )
                    continue

                if symbol.name in (END, INVALID):
                    raise GrammarError(f"{symbol.name} is a reserved token kind")
                if symbol.name in by_head:
                    raise GrammarError(f"Found a terminal and a rule both named {symbol.name}")

                existing = terminals.get(symbol.name)
                if existing is not None and existing.text != symbol.text:
                    raise GrammarError(
                        f"Found more than one terminal named {symbol.name}: "
                        f"{existing.text!r} and {symbol.text!r}"
                    )
                terminals[symbol.name] = symbol

        if start is None:
            start = numbered[0].head
        elif isinstance(start, str):
            start = NonTerminal(start)
        if start.name not in by_head:
            raise GrammarError(f"Start symbol {start.name} has no productions")

        self.productions = tuple(numbered)
        self.start = start
        self.name = name or "unknown"
        self._by_head = {head: tuple(ps) for head, ps in by_head.items()}
        self._terminals = terminals
        self._first = FirstInfo.from_productions(self.productions)

    @classmethod
    def from_rules(cls, start: "RuleDefinition", name: str | None = None) -> "Grammar":
        """Build a grammar from `@rule` functions, gathering every rule that
        can be reached from `start`. Productions are numbered in the order
        the rules are discovered, start first.
        """
        productions: list[ProductionSpec] = []
        seen: dict[str, RuleDefinition] = {}

        queue = collections.deque([start])
        while len(queue) > 0:
            definition = queue.popleft()
            existing = seen.get(definition.name)
            if existing is not None:
                if existing is not definition:
                    raise GrammarError(
                        f"""Found more than one rule named {definition.name}:
- {existing.definition_location}
- {definition.definition_location}"""
                    )
                continue
            seen[definition.name] = definition

            for body in definition.body:
                symbols: list[Symbol] = []
                for item in body:
                    if isinstance(item, RuleDefinition):
                        queue.append(item)
                        symbols.append(item.symbol)
                    else:
                        symbols.append(item)
                productions.append((definition.symbol, symbols))

        return cls(productions, start=start.symbol, name=name)

    def __len__(self) -> int:
        return len(self.productions)

    def __iter__(self) -> typing.Iterator[Production]:
        return iter(self.productions)

    def production(self, number: int) -> Production:
        """The production with the given 1-based number."""
        if number < 1 or number > len(self.productions):
            raise IndexError(f"No rule {number}; rules are numbered 1 to {len(self.productions)}")
        return self.productions[number - 1]

    def productions_for(self, nonterminal: NonTerminal | str) -> typing.Tuple[Production, ...]:
        """Every production with the given head, in declaration order."""
        name = nonterminal if isinstance(nonterminal, str) else nonterminal.name
        result = self._by_head.get(name)
        if result is None:
            raise GrammarError(f"No rule named {name}")
        return result

    def non_terminals(self) -> list[NonTerminal]:
        return [NonTerminal(name) for name in self._by_head]

    def terminals(self) -> list[Terminal]:
        return list(self._terminals.values())

    def first(self, symbols: typing.Iterable[Symbol]) -> typing.Tuple[frozenset[str], bool]:
        """The first set of a symbol sequence, and whether it can be empty."""
        return self._first.first(symbols)

    def format_rule(self, number: int) -> str:
        return self.production(number).format()

    def format(self) -> str:
        return "\n".join(f"{p.number}: {p.format()}" for p in self.productions)

    def lexer(self, ignore: str = " \t\r\n") -> Lexer:
        """A lexer that recognizes the literal text of every terminal."""
        patterns: dict[str, str] = {}
        for terminal in self._terminals.values():
            existing = patterns.get(terminal.text)
            if existing is not None and existing != terminal.name:
                raise GrammarError(
                    f"Terminals {existing} and {terminal.name} share the text {terminal.text!r}"
                )
            patterns[terminal.text] = terminal.name
        return Lexer(patterns, ignore=ignore)

    def __repr__(self) -> str:
        return f"Grammar({self.name!r}, {len(self.productions)} rules, start={self.start.name})"


###############################################################################
# Sugar for declaring grammars in Python
###############################################################################
class RuleDefinition(Rule):
    """A nonterminal defined by a function that returns its body.

    You probably don't want to create this directly; use the `@rule`
    decorator instead.
    """

    fn: typing.Callable[[], Rule]
    name: str
    definition_location: str
    _body: list[list["Terminal | RuleDefinition"]] | None

    def __init__(self, fn: typing.Callable[[], Rule], name: str, definition_location: str):
        self.fn = fn
        self.name = name
        self.definition_location = definition_location
        self._body = None

    @property
    def symbol(self) -> NonTerminal:
        return NonTerminal(self.name)

    @property
    def body(self) -> list[list["Terminal | RuleDefinition"]]:
        """The flattened body: one list of symbols per alternative."""
        if self._body is None:
            self._body = list(self.fn().flatten())
        return self._body

    def flatten(self) -> typing.Generator[list["Terminal | RuleDefinition"], None, None]:
        # When flattened we're being referenced from some other rule; our own
        # body gets generated when the grammar gets around to us.
        yield [self]


class AlternativeRule(Rule):
    """A rule that matches if one or another rule matches."""

    def __init__(self, left: Rule, right: Rule):
        self.left = left
        self.right = right

    def flatten(self) -> typing.Generator[list["Terminal | RuleDefinition"], None, None]:
        # Left alternatives first, so declaration order survives.
        yield from self.left.flatten()
        yield from self.right.flatten()


class SequenceRule(Rule):
    """A rule that matches a first part followed by a second part."""

    def __init__(self, first: Rule, second: Rule):
        self.first = first
        self.second = second

    def flatten(self) -> typing.Generator[list["Terminal | RuleDefinition"], None, None]:
        for first in self.first.flatten():
            for second in self.second.flatten():
                yield first + second


class NothingRule(Rule):
    """A rule that matches no input. Use the singleton `Nothing`."""

    def flatten(self) -> typing.Generator[list["Terminal | RuleDefinition"], None, None]:
        yield []


Nothing = NothingRule()


def alt(*args: Rule) -> Rule:
    """A rule that matches one of a series of alternatives."""
    result = args[0]
    for r in args[1:]:
        result = AlternativeRule(result, r)
    return result


def seq(*args: Rule) -> Rule:
    """A rule that matches a sequence of rules."""
    result = args[0]
    for r in args[1:]:
        result = SequenceRule(result, r)
    return result


def opt(*args: Rule) -> Rule:
    """Mark a sequence as optional."""
    return AlternativeRule(seq(*args), Nothing)


@typing.overload
def rule(f: typing.Callable[[], Rule], /) -> RuleDefinition: ...


@typing.overload
def rule(name: str | None = None) -> typing.Callable[[typing.Callable[[], Rule]], RuleDefinition]: ...


def rule(
    name: str | None | typing.Callable[[], Rule] = None,
) -> RuleDefinition | typing.Callable[[typing.Callable[[], Rule]], RuleDefinition]:
    """The decorator that marks a function as a nonterminal.

    It can be used with or without arguments; the single optional argument
    overrides the name of the nonterminal, which defaults to the name of the
    function.
    """
    if callable(name):
        f = name
        caller = inspect.stack()[1]
        return RuleDefinition(f, f.__name__, f"{caller.filename}:{caller.lineno}")

    def wrapper(f: typing.Callable[[], Rule]) -> RuleDefinition:
        caller = inspect.stack()[1]
        return RuleDefinition(f, name or f.__name__, f"{caller.filename}:{caller.lineno}")

    return wrapper


###############################################################################
# Arrow notation
###############################################################################
_SYMBOL_PATTERN = re.compile(r"->|→|\||[A-Za-z_][A-Za-z0-9_']*|\S")
_ARROWS = ("->", "→")
_EMPTY = ("ε", "eps")


def parse_grammar(
    text: str,
    terminals: typing.Mapping[str, str] | None = None,
    start: str | None = None,
    name: str | None = None,
) -> Grammar:
    """Parse a grammar written in arrow notation.

    Each non-blank line is `Head -> alt | alt | ...`, or a continuation
    `| alt | ...` adding alternatives to the previous head. Symbols are
    identifiers or single punctuation characters, so `(S+T)` is five symbols.
    Anything that appears as a head is a nonterminal; everything else is a
    terminal. `terminals` maps the text of a terminal to the token kind it
    should match (otherwise the kind is the text itself). An empty
    alternative, `ε` or `eps` means the empty body. Lines starting with `#`
    are comments.
    """
    if terminals is None:
        terminals = {}

    raw: list[typing.Tuple[str, list[str]]] = []
    head: str | None = None
    for line_number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if len(line) == 0 or line.startswith("#"):
            continue

        symbols = _SYMBOL_PATTERN.findall(line)
        if symbols[0] == "|":
            if head is None:
                raise GrammarError(f"line {line_number}: alternative without a rule head")
            rest = symbols
        elif len(symbols) >= 2 and symbols[1] in _ARROWS:
            if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_']*", symbols[0]):
                raise GrammarError(f"line {line_number}: {symbols[0]!r} is not a valid rule name")
            head = symbols[0]
            rest = ["|"] + symbols[2:]
        else:
            raise GrammarError(f"line {line_number}: expected 'Head -> body', got {line!r}")

        # rest always starts with a separator; split it into alternatives.
        alternatives: list[list[str]] = []
        for symbol in rest:
            if symbol == "|":
                alternatives.append([])
            elif symbol in _ARROWS:
                raise GrammarError(f"line {line_number}: unexpected {symbol!r}")
            else:
                alternatives[-1].append(symbol)

        for alternative in alternatives:
            if len(alternative) == 1 and alternative[0] in _EMPTY:
                alternative = []
            raw.append((head, alternative))

    if len(raw) == 0:
        raise GrammarError("A grammar needs at least one production")

    heads = {h for h, _ in raw}

    def to_symbol(s: str) -> Symbol:
        if s in heads:
            return NonTerminal(s)
        return Terminal(terminals.get(s, s), s)

    return Grammar(
        [(NonTerminal(h), [to_symbol(s) for s in body]) for h, body in raw],
        start=start,
        name=name,
    )

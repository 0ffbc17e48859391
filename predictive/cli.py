import argparse
import logging
import sys

from . import examples
from .errors import GrammarError, LexError
from .grammar import Grammar, parse_grammar
from .runtime import ParseSyntaxError, Parser


def _terminal_mapping(values: list[str]) -> dict[str, str]:
    result = {}
    for value in values:
        text, sep, kind = value.rpartition("=")
        if not sep or not text or not kind:
            raise argparse.ArgumentTypeError(f"--terminal wants TEXT=KIND, got {value!r}")
        result[text] = kind
    return result


def load_grammar(path: str | None, terminals: dict[str, str]) -> Grammar:
    if path is None:
        mapping = dict(examples.PARENS_TERMINALS)
        mapping.update(terminals)
        return parse_grammar(examples.PARENS_GRAMMAR, terminals=mapping, name="parens")

    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return parse_grammar(text, terminals=terminals, name=path)


def main(args: list[str]) -> int:
    parser = argparse.ArgumentParser(
        description="Parse a string with an LL(1) grammar and print the rules that derive it"
    )
    parser.add_argument("input", help="The text to parse")
    parser.add_argument(
        "--grammar",
        "-g",
        type=str,
        default=None,
        help="Path to a file containing the grammar in arrow notation (Head -> a | b). "
        "The default is the built-in grammar S -> T | (S+T), T -> a.",
    )
    parser.add_argument(
        "--terminal",
        "-t",
        action="append",
        default=[],
        metavar="TEXT=KIND",
        help="Name the token kind for a terminal's text, e.g. --terminal '(=LPAR'. "
        "May be given more than once.",
    )
    parser.add_argument(
        "--start",
        type=str,
        default=None,
        help="The nonterminal to start parsing with. The default is the head of the first rule.",
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Fail unless the whole input is consumed, not just a prefix of it.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every dispatch and match as it is entered and left.",
    )

    parsed = parser.parse_args(args[1:])

    logging.basicConfig(
        level=logging.INFO if parsed.verbose else logging.WARNING,
        format="%(message)s",
    )

    try:
        terminals = _terminal_mapping(parsed.terminal)
        grammar = load_grammar(parsed.grammar, terminals)
        runner = Parser(
            grammar,
            parsed.start,
            require_full_consumption=parsed.full,
            verbose=parsed.verbose,
            trace=lambda number: print(f"{number}: {grammar.format_rule(number)}"),
        )
    except (argparse.ArgumentTypeError, GrammarError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    try:
        result = runner.parse(parsed.input)
    except (LexError, ParseSyntaxError) as e:
        print(f"{e}", file=sys.stderr)
        return 1

    if result.at_end:
        print("accepted")
    else:
        print(f"accepted prefix, stopped at {result.token.describe()} (offset {result.token.start})")
    return 0


def run():
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    run()

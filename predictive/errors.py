class PredictiveError(Exception):
    """Base class for everything this library raises on purpose."""

    pass


class GrammarError(PredictiveError):
    """The grammar could not be built: bad grammar text, a body that names a
    nonterminal with no productions, an unknown start symbol, or two rules
    fighting over one name.
    """

    pass


class LexError(PredictiveError):
    """The lexer found a character that no terminal pattern accepts."""

    offset: int

    def __init__(self, message: str, offset: int):
        super().__init__(message)
        self.offset = offset

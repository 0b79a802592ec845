"""Statement boundary detection for interactive SQL input.

SqlLexer is fed text fragments (usually one terminal line at a time) and
reports when the accumulated text forms a complete statement. It knows just
enough of SQL's tokenization to do that: string literals, the three quoted
identifier styles, line and block comments, and parenthesis nesting. A ``;``
only terminates a statement outside all of those and at depth zero.
"""

from __future__ import annotations

from enum import StrEnum


class LexerState(StrEnum):
    NORMAL = "normal"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    STRING_LITERAL = "string_literal"
    ANSI_QUOTED_IDENTIFIER = "ansi_quoted_identifier"
    BACK_QUOTED_IDENTIFIER = "back_quoted_identifier"
    BRACKET_QUOTED_IDENTIFIER = "bracket_quoted_identifier"
    COMPLETE = "complete"
    ERROR = "error"


_TERMINAL = frozenset({LexerState.COMPLETE, LexerState.ERROR})

_QUOTED = frozenset(
    {
        LexerState.STRING_LITERAL,
        LexerState.ANSI_QUOTED_IDENTIFIER,
        LexerState.BACK_QUOTED_IDENTIFIER,
        LexerState.BRACKET_QUOTED_IDENTIFIER,
    }
)

# Two-character tokens: (state, char, lookahead) -> next state.
# Both characters are consumed when a pair matches.
_PAIRS: dict[tuple[LexerState, str, str], LexerState] = {
    (LexerState.STRING_LITERAL, "'", "'"): LexerState.STRING_LITERAL,
    (LexerState.NORMAL, "-", "-"): LexerState.LINE_COMMENT,
    (LexerState.NORMAL, "/", "*"): LexerState.BLOCK_COMMENT,
    (LexerState.NORMAL, "/", "/"): LexerState.LINE_COMMENT,
    (LexerState.BLOCK_COMMENT, "*", "/"): LexerState.NORMAL,
}

_SINGLES: dict[tuple[LexerState, str], LexerState] = {
    (LexerState.NORMAL, "'"): LexerState.STRING_LITERAL,
    (LexerState.STRING_LITERAL, "'"): LexerState.NORMAL,
    (LexerState.NORMAL, '"'): LexerState.ANSI_QUOTED_IDENTIFIER,
    (LexerState.ANSI_QUOTED_IDENTIFIER, '"'): LexerState.NORMAL,
    (LexerState.NORMAL, "`"): LexerState.BACK_QUOTED_IDENTIFIER,
    (LexerState.BACK_QUOTED_IDENTIFIER, "`"): LexerState.NORMAL,
    (LexerState.NORMAL, "["): LexerState.BRACKET_QUOTED_IDENTIFIER,
    (LexerState.BRACKET_QUOTED_IDENTIFIER, "]"): LexerState.NORMAL,
    (LexerState.NORMAL, "]"): LexerState.ERROR,
}

_NEWLINES = frozenset("\n\r")


class SqlLexer:
    """Tracks whether fed SQL text forms one complete statement.

    A lexer covers exactly one statement. Once it reaches COMPLETE or ERROR
    further feeding is ignored; start a new lexer for the next statement.
    """

    def __init__(self) -> None:
        self.state = LexerState.NORMAL
        self.paren_depth = 0

    @property
    def is_terminal(self) -> bool:
        return self.state in _TERMINAL

    def feed(self, fragment: str) -> None:
        """Consume a fragment, updating the state from its contents.

        Lookahead never reaches past the end of the fragment.
        """
        pos = 0
        length = len(fragment)
        while pos < length and not self.is_terminal:
            char = fragment[pos]
            lookahead = fragment[pos + 1] if pos + 1 < length else None
            pos += 1 + self._dispatch(char, lookahead)

    def _dispatch(self, char: str, lookahead: str | None) -> int:
        """Apply one character; return how many lookahead chars were consumed.

        A lookahead character that does not complete a pair is left in
        place and dispatched on its own by the next step.
        """
        if lookahead is not None:
            paired = _PAIRS.get((self.state, char, lookahead))
            if paired is not None:
                self.state = paired
                return 1

        single = _SINGLES.get((self.state, char))
        if single is not None:
            self.state = single
            return 0

        if char in _NEWLINES:
            if self.state is LexerState.LINE_COMMENT:
                self.state = LexerState.NORMAL
            elif self.state in _QUOTED:
                self.state = LexerState.ERROR
            return 0

        if self.state is not LexerState.NORMAL:
            return 0

        if char == "(":
            self.paren_depth += 1
        elif char == ")":
            if self.paren_depth == 0:
                self.state = LexerState.ERROR
            else:
                self.paren_depth -= 1
        elif char == ";":
            if self.paren_depth == 0:
                self.state = LexerState.COMPLETE
            else:
                self.state = LexerState.ERROR
        return 0


_CLOSING_QUOTES = {'"': '"', "`": "`", "[": "]"}
_DOUBLED_ESCAPES = frozenset({'"', "`"})


def split_dotted_name(name: str) -> list[str]:
    """Split a ``catalog.schema.table`` style name into its components.

    Double-quoted and backquoted components may contain their own quote
    character doubled. Bracketed components end at the first ``]``.
    Quote characters are removed from the result.

    >>> split_dotted_name('main."my.table"')
    ['main', 'my.table']
    """
    components: list[str] = []
    current: list[str] = []
    closing: str | None = None
    escapes = False

    pos = 0
    while pos < len(name):
        char = name[pos]
        pos += 1

        if closing is not None:
            if char != closing:
                current.append(char)
            elif escapes and pos < len(name) and name[pos] == closing:
                current.append(char)
                pos += 1
            else:
                closing = None
            continue

        if char == ".":
            components.append("".join(current))
            current = []
        elif char in _CLOSING_QUOTES:
            closing = _CLOSING_QUOTES[char]
            escapes = char in _DOUBLED_ESCAPES
        else:
            current.append(char)

    components.append("".join(current))
    return components

"""
Lexer for ZScript - Recursive Descent Parser

Tokenizes ZScript source code into a stream of tokens.

Features:
- Lazy: tokens() is a generator and restarts from the top on every call
- Indentation-aware (emits NEWLINE/INDENT/DEDENT)
- Position tracking (line, column, offset)
- Bad input becomes ERROR tokens so one pass reports every lexical problem
"""

from typing import Iterator, List, Optional

from .token_types import TT, Tok
from .types import CompileError

# ============================================================================
# Lexer Implementation
# ============================================================================

ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '\\': '\\',
    '"': '"',
    "'": "'",
    '0': '\0',
}

TAB_WIDTH = 4


class Lexer:
    """
    ZScript lexer with indentation handling.

    Based on Python's indentation model:
    - Track stack of indentation levels
    - Emit INDENT when level increases
    - Emit DEDENT when level decreases
    - Newlines inside (), [] and {} are not significant
    """

    # Keyword mapping
    KEYWORDS = {
        'var': TT.VAR,
        'func': TT.FUNC,
        'return': TT.RETURN,
        'if': TT.IF,
        'else': TT.ELSE,
        'while': TT.WHILE,
        'for': TT.FOR,
        'iter': TT.ITER,
        'in': TT.IN,
        'break': TT.BREAK,
        'continue': TT.CONTINUE,
        'pass': TT.PASS,
        'struct': TT.STRUCT,
        'and': TT.AND,
        'or': TT.OR,
        'true': TT.TRUE,
        'false': TT.FALSE,
        'null': TT.NULL,
    }

    # Operator mapping: longest matches first to handle prefixes correctly
    OPERATORS = [
        # Two-character operators
        ('==', TT.EQ),
        ('!=', TT.NEQ),
        ('<=', TT.LTE),
        ('>=', TT.GTE),
        ('**', TT.POW),
        ('/_', TT.FLOORDIV),
        ('%%', TT.PERCENT),
        ('++', TT.INCR),
        ('--', TT.DECR),

        # Single-character operators
        ('+', TT.PLUS),
        ('-', TT.MINUS),
        ('*', TT.STAR),
        ('/', TT.SLASH),
        ('%', TT.MOD),
        ('<', TT.LT),
        ('>', TT.GT),
        ('!', TT.NEG),
        ('=', TT.ASSIGN),
        ('(', TT.LPAR),
        (')', TT.RPAR),
        ('[', TT.LSQB),
        (']', TT.RSQB),
        ('{', TT.LBRACE),
        ('}', TT.RBRACE),
        ('.', TT.DOT),
        (',', TT.COMMA),
        (':', TT.COLON),
        (';', TT.SEMI),
        ('|', TT.PIPE),
    ]

    _OPEN = {TT.LPAR, TT.LSQB, TT.LBRACE}
    _CLOSE = {TT.RPAR, TT.RSQB, TT.RBRACE}

    def __init__(self, source: str, track_indentation: bool = True):
        self.source = source
        self.track_indentation = track_indentation
        self._reset()

    def _reset(self) -> None:
        self.pos = 0
        self.line = 1
        self.column = 1
        self.pending: List[Tok] = []

        # Token start, captured before each scan
        self.start_pos = 0
        self.start_line = 1
        self.start_column = 1

        # Indentation tracking
        self.indent_stack = [0]
        self.at_line_start = True
        self.line_has_content = False
        self.depth = 0

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokens(self) -> Iterator[Tok]:
        """Yield tokens lazily; each call starts again at the top of the source."""
        self._reset()

        if self.source.startswith('#!'):
            self.skip_line_comment()

        while self.pos < len(self.source):
            self.scan_token()
            yield from self._drain()

        # Close the last logical line, then unwind indentation
        if self.line_has_content:
            self.mark_start()
            self.emit(TT.NEWLINE, '')
        if self.track_indentation:
            while len(self.indent_stack) > 1:
                self.indent_stack.pop()
                self.emit(TT.DEDENT, '')

        self.mark_start()
        self.emit(TT.EOF, None)
        yield from self._drain()

    def tokenize(self) -> List[Tok]:
        """Tokenize entire source, return token list"""
        return list(self.tokens())

    def _drain(self) -> Iterator[Tok]:
        while self.pending:
            yield self.pending.pop(0)

    def scan_token(self):
        """Scan next token"""
        # Handle indentation at line start
        if self.at_line_start:
            self.handle_indentation()
            return

        # Skip whitespace (not newlines)
        if self.skip_whitespace():
            return

        self.mark_start()
        ch = self.peek()

        # Comments
        if ch == '/' and self.peek(1) == '/':
            self.skip_line_comment()
            return
        if ch == '/' and self.peek(1) == '*':
            self.skip_block_comment()
            return

        # Newlines
        if ch in ('\n', '\r'):
            self.scan_newline()
            return

        # String and character literals
        if ch == '"':
            self.scan_string()
            return
        if ch == "'":
            self.scan_char()
            return

        # Numbers
        if ch.isdigit():
            self.scan_number()
            return

        # Identifiers and keywords
        if ch.isalpha() or ch == '_':
            self.scan_identifier()
            return

        # Operators and punctuation
        self.scan_operator()

    # ========================================================================
    # Indentation Handling
    # ========================================================================

    def handle_indentation(self):
        """
        Handle indentation at start of line.
        Emit INDENT/DEDENT tokens as needed.
        """
        self.at_line_start = False
        if not self.track_indentation or self.depth > 0:
            return

        indent = 0
        while self.peek() in (' ', '\t'):
            indent += 1 if self.advance() == ' ' else TAB_WIDTH

        # Blank and comment-only lines carry no layout
        if self.pos >= len(self.source) or self.peek() in ('\n', '\r'):
            return
        if self.peek() == '/' and self.peek(1) in ('/', '*'):
            return

        self.mark_start()
        current = self.indent_stack[-1]

        if indent > current:
            self.indent_stack.append(indent)
            self.emit(TT.INDENT, '')

        elif indent < current:
            # Decrease indentation - may emit multiple DEDENTs
            while len(self.indent_stack) > 1 and self.indent_stack[-1] > indent:
                self.indent_stack.pop()
                self.emit(TT.DEDENT, '')

            if self.indent_stack[-1] != indent:
                self.emit(TT.ERROR, "Inconsistent indentation.")

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_newline(self):
        """Scan newline character"""
        if self.peek() == '\r' and self.peek(1) == '\n':
            self.advance(2)  # consume CRLF
        else:
            self.advance()

        if self.depth == 0 and self.line_has_content:
            self.emit(TT.NEWLINE, '\n')
            self.line_has_content = False

        self.line += 1
        self.column = 1
        self.at_line_start = True

    def scan_string(self):
        """Scan string literal: "..." """
        self.advance()  # opening quote
        bad_escape = None

        while self.pos < len(self.source) and self.peek() not in ('"', '\n'):
            if self.peek() == '\\':
                self.advance()
                if self.peek() not in ESCAPES and bad_escape is None:
                    bad_escape = self.peek()
            self.advance()

        if self.peek() != '"':
            self.emit(TT.ERROR, "Unterminated string.")
            return

        self.advance()  # closing quote
        if bad_escape is not None:
            self.emit(TT.ERROR, f"Invalid escape sequence '\\{bad_escape}'.")
            return
        self.emit(TT.STRING, self.lexeme())

    def scan_char(self):
        """Scan character literal: 'c' or an escape like '\\n'"""
        self.advance()  # opening quote

        if self.pos >= len(self.source) or self.peek() in ("'", '\n'):
            self.emit(TT.ERROR, "Empty or unterminated character literal.")
            if self.peek() == "'":
                self.advance()
            return

        if self.peek() == '\\':
            self.advance()
            if self.pos >= len(self.source):
                self.emit(TT.ERROR, "Unterminated escape sequence in character literal.")
                return
            if self.peek() not in ESCAPES:
                self.emit(TT.ERROR, f"Invalid escape sequence '\\{self.peek()}'.")
                self.advance()
                self.skip_to_quote()
                return
        self.advance()

        if self.peek() != "'":
            self.emit(TT.ERROR, "Unterminated character literal.")
            self.skip_to_quote()
            return

        self.advance()
        self.emit(TT.CHAR, self.lexeme())

    def skip_to_quote(self):
        while self.pos < len(self.source) and self.peek() not in ("'", '\n'):
            self.advance()
        if self.peek() == "'":
            self.advance()

    def scan_number(self):
        """Scan number literal"""
        # Integer part
        while self.peek().isdigit():
            self.advance()

        # Decimal part
        if self.peek() == '.' and self.peek(1).isdigit():
            self.advance()
            while self.peek().isdigit():
                self.advance()

        # Scientific notation
        if self.peek() in ('e', 'E'):
            sign = 1 if self.peek(1) in ('+', '-') else 0
            if self.peek(1 + sign).isdigit():
                self.advance(1 + sign)
                while self.peek().isdigit():
                    self.advance()

        # Keep the decimal text; the parser converts it
        self.emit(TT.NUMBER, self.lexeme())

    def scan_identifier(self):
        """Scan identifier or keyword"""
        while self.peek().isalnum() or self.peek() == '_':
            self.advance()

        value = self.lexeme()
        self.emit(self.KEYWORDS.get(value, TT.IDENT), value)

    def scan_operator(self):
        """Scan operators and punctuation"""
        for op_str, op_type in self.OPERATORS:
            if self.source.startswith(op_str, self.pos):
                self.advance(len(op_str))
                if op_type in self._OPEN:
                    self.depth += 1
                elif op_type in self._CLOSE and self.depth > 0:
                    self.depth -= 1
                self.emit(op_type, op_str)
                return

        ch = self.advance()
        self.emit(TT.ERROR, f"Unexpected character '{ch}'.")

    # ========================================================================
    # Utilities
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume n characters and return them as a string"""
        result = self.source[self.pos:self.pos + n]
        self.pos += n
        self.column += n
        return result

    def mark_start(self) -> None:
        self.start_pos = self.pos
        self.start_line = self.line
        self.start_column = self.column

    def lexeme(self) -> str:
        return self.source[self.start_pos:self.pos]

    def skip_whitespace(self) -> bool:
        """Skip whitespace (not newlines), return True if any skipped"""
        skipped = False
        while self.peek() in (' ', '\t'):
            self.advance()
            skipped = True
        return skipped

    def skip_line_comment(self):
        """Skip comment until end of line"""
        while self.pos < len(self.source) and self.peek() not in ('\n', '\r'):
            self.advance()

    def skip_block_comment(self):
        """Skip /* ... */, keeping line numbers in step"""
        self.advance(2)
        while self.pos < len(self.source):
            if self.peek() == '*' and self.peek(1) == '/':
                self.advance(2)
                return
            if self.peek() == '\n':
                self.line += 1
                self.column = 0
            self.advance()

        self.emit(TT.ERROR, "Unterminated block comment.")

    def emit(self, token_type: TT, value):
        """Queue a token positioned at the current token start"""
        tok = Tok(
            type=token_type,
            value=value,
            line=self.start_line,
            column=self.start_column,
            offset=self.start_pos,
        )
        if token_type not in (TT.NEWLINE, TT.INDENT, TT.DEDENT, TT.EOF):
            self.line_has_content = True
        self.pending.append(tok)


class LexError(CompileError):
    """Lexical analysis error"""


def unescape(body: str) -> str:
    """Decode the escape sequences of a string or char literal body."""
    out: List[str] = []
    it = iter(body)

    for ch in it:
        if ch == '\\':
            nxt: Optional[str] = next(it, None)
            out.append(ESCAPES.get(nxt, nxt) if nxt is not None else '')
        else:
            out.append(ch)

    return ''.join(out)


def tokenize(source: str, track_indentation: bool = True) -> List[Tok]:
    """Convenience function to tokenize source"""
    lexer = Lexer(source, track_indentation=track_indentation)
    return lexer.tokenize()

"""
Recursive Descent Parser for ZScript

Structure:
- Lexer: lazy token stream from source; ERROR tokens become LexErrors here
- Parser: recursive descent for statements, precedence climbing for expressions
- AST: typed nodes from tree.py

Error recovery is statement-level: the first problem in a statement is
recorded, the parser skips to the next statement boundary and carries on.
Every diagnostic is collected; the earliest one is raised at the end with
the full list attached as ``errors``.
"""

from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Tuple

from .lexer_rd import LexError, Lexer, unescape
from .token_types import TT, Tok
from .types import CompileError
from .tree import (
    ArrayLit, Assign, Binary, Block, Break, Call, Continue, Expr, ExprStmt, For,
    FuncDecl, GetField, Grouping, If, Index, Iter, Literal, Logical, MapLit, Pass,
    Program, Return, Slice, Stmt, StructDecl, StructLit, Unary, Update, VarDecl,
    Variable, While,
)

MAX_PARAMS = 255
# expressions, prefix operators and blocks each count one level
MAX_NESTING = 64
NESTING_MESSAGE = "Expression nested too deeply."

# ============================================================================
# Parser
# ============================================================================

class ParseError(CompileError):
    """Parse error with position info"""
    def __init__(self, message: str, token: Optional[Tok] = None):
        self.token = token

        if token is None:
            super().__init__(message)
            return

        if token.type == TT.EOF:
            lexeme: Optional[str] = ""
        elif token.type in (TT.NEWLINE, TT.INDENT, TT.DEDENT):
            lexeme = None
        else:
            lexeme = str(token.value)
        super().__init__(message, token.line, token.column, lexeme)


STATEMENT_STARTS = {
    TT.VAR, TT.FUNC, TT.STRUCT, TT.IF, TT.WHILE, TT.FOR, TT.ITER,
    TT.RETURN, TT.BREAK, TT.CONTINUE, TT.PASS,
}

STATEMENT_ENDS = (TT.NEWLINE, TT.SEMI, TT.DEDENT, TT.EOF)

ASSIGNABLE = (Variable, GetField, Index)


class Parser:
    """
    Recursive descent parser for ZScript.

    Expression precedence (lowest to highest):
    1. assignment (=), right associative
    2. or
    3. and
    4. equality (==, !=)
    5. comparison (<, <=, >, >=)
    6. additive (+, -)
    7. multiplicative (*, /, /_, %, %%)
    8. unary (-, !, prefix ++/--)
    9. power (**), right associative
    10. postfix (call, [index], [slice], .field, Struct{...}, postfix ++/--)
    11. primary (literals, identifiers, parens, array and map literals)
    """

    def __init__(self, tokens: Iterable[Tok]):
        self._stream: Iterator[Tok] = iter(tokens)
        self._lookahead: List[Tok] = []
        self._eof = Tok(TT.EOF, None, 0, 0)
        self.errors: List[CompileError] = []
        self.function_depth = 0
        self.loop_depth = 0
        self.nesting = 0
        self.current = self._pull()

    # ========================================================================
    # Token Navigation
    # ========================================================================

    def _pull(self) -> Tok:
        for tok in self._stream:
            if tok.type == TT.ERROR:
                self.errors.append(LexError(tok.value, tok.line, tok.column))
                continue
            if tok.type == TT.EOF:
                self._eof = tok
            return tok
        return self._eof

    def peek(self, offset: int = 0) -> Tok:
        """Look ahead at token"""
        if offset == 0:
            return self.current
        while len(self._lookahead) < offset:
            self._lookahead.append(self._pull())
        return self._lookahead[offset - 1]

    def advance(self) -> Tok:
        """Consume current token and move to next"""
        prev = self.current
        if self._lookahead:
            self.current = self._lookahead.pop(0)
        elif prev.type != TT.EOF:
            self.current = self._pull()
        return prev

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def match(self, *types: TT) -> bool:
        """Check and consume if current token matches"""
        if self.check(*types):
            self.advance()
            return True
        return False

    @contextmanager
    def nested(self):
        if self.nesting >= MAX_NESTING:
            raise ParseError(NESTING_MESSAGE, self.current)
        self.nesting += 1
        try:
            yield
        finally:
            self.nesting -= 1

    def expect(self, token_type: TT, message: str) -> Tok:
        """Consume token of expected type or raise error"""
        if not self.check(token_type):
            raise ParseError(message, self.current)
        return self.advance()

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> Program:
        """Parse entire program"""
        stmts: List[Stmt] = []

        while not self.check(TT.EOF):
            # a DEDENT here is left over from a block abandoned during recovery
            if self.match(TT.NEWLINE, TT.SEMI, TT.DEDENT):
                continue

            stmt = self.declaration()
            if stmt is not None:
                stmts.append(stmt)

        if self.errors:
            ordered = sorted(self.errors, key=lambda e: (e.line or 0, e.column or 0))
            first = ordered[0]
            first.errors = ordered
            raise first

        return Program(tuple(stmts), line=1, column=1)

    def synchronize(self) -> None:
        """
        Skip to the next statement boundary.

        Consumes at least one token unless the parser sits on DEDENT or EOF,
        which close the enclosing block or program and so guarantee progress.
        Nested indented blocks are skipped whole to keep INDENT/DEDENT balanced.
        """
        depth = 0

        if not self.check(TT.DEDENT, TT.EOF):
            tok = self.advance()
            if tok.type == TT.INDENT:
                depth += 1
            elif tok.type in (TT.NEWLINE, TT.SEMI) and not self.check(TT.INDENT):
                return

        while not self.check(TT.EOF):
            t = self.current.type

            if t == TT.INDENT:
                depth += 1
            elif t == TT.DEDENT:
                if depth == 0:
                    return
                depth -= 1
            elif depth == 0:
                if t in (TT.NEWLINE, TT.SEMI):
                    self.advance()
                    if not self.check(TT.INDENT):
                        return
                    continue
                if t in STATEMENT_STARTS:
                    return

            self.advance()

    # ========================================================================
    # Statements
    # ========================================================================

    def declaration(self) -> Optional[Stmt]:
        try:
            if self.check(TT.FUNC):
                return self.func_decl()
            if self.check(TT.STRUCT):
                return self.struct_decl()
            return self.statement()
        except ParseError as err:
            self.errors.append(err)
            self.synchronize()
            return None

    def statement(self) -> Stmt:
        if self.check(TT.IF):
            return self.if_stmt()
        if self.check(TT.WHILE):
            return self.while_stmt()
        if self.check(TT.FOR):
            return self.for_stmt()
        if self.check(TT.ITER):
            return self.iter_stmt()
        if self.check(TT.INDENT):
            raise ParseError("Unexpected indent.", self.current)

        stmt = self.simple_statement()
        self.end_statement()
        return stmt

    def simple_statement(self) -> Stmt:
        tok = self.current

        if self.match(TT.VAR):
            return self.var_decl_body(tok)

        if self.match(TT.RETURN):
            if self.function_depth == 0:
                raise ParseError("Can't return from top-level code.", tok)
            value = None if self.check(*STATEMENT_ENDS) else self.expression()
            return Return(value, line=tok.line, column=tok.column)

        if self.match(TT.BREAK):
            if self.loop_depth == 0:
                raise ParseError("Can't use 'break' outside of a loop.", tok)
            return Break(line=tok.line, column=tok.column)

        if self.match(TT.CONTINUE):
            if self.loop_depth == 0:
                raise ParseError("Can't use 'continue' outside of a loop.", tok)
            return Continue(line=tok.line, column=tok.column)

        if self.match(TT.PASS):
            return Pass(line=tok.line, column=tok.column)

        expr = self.expression()
        return ExprStmt(expr, line=tok.line, column=tok.column)

    def end_statement(self) -> None:
        if self.match(TT.NEWLINE, TT.SEMI):
            return
        if self.check(TT.DEDENT, TT.EOF):
            return
        raise ParseError("Expect newline or ';' after statement.", self.current)

    def var_decl_body(self, tok: Tok) -> VarDecl:
        name = self.expect(TT.IDENT, "Expect variable name.")
        init = self.expression() if self.match(TT.ASSIGN) else None
        return VarDecl(name.value, init, line=tok.line, column=tok.column)

    def block(self, after: str) -> Block:
        """``:`` followed by an indented suite or one simple statement."""
        colon = self.expect(TT.COLON, f"Expect ':' after {after}.")

        if not self.match(TT.NEWLINE):
            stmt = self.simple_statement()
            self.end_statement()
            return Block((stmt,), line=colon.line, column=colon.column)

        if not self.check(TT.INDENT):
            raise ParseError(f"Expect indented block after {after}.", self.current)
        self.advance()

        stmts: List[Stmt] = []
        with self.nested():
            while not self.check(TT.DEDENT, TT.EOF):
                if self.match(TT.NEWLINE, TT.SEMI):
                    continue
                stmt = self.declaration()
                if stmt is not None:
                    stmts.append(stmt)

        self.match(TT.DEDENT)
        return Block(tuple(stmts), line=colon.line, column=colon.column)

    def loop_body(self, after: str) -> Block:
        self.loop_depth += 1
        try:
            return self.block(after)
        finally:
            self.loop_depth -= 1

    def func_decl(self) -> FuncDecl:
        tok = self.advance()
        name = self.expect(TT.IDENT, "Expect function name.")
        self.expect(TT.LPAR, "Expect '(' after function name.")

        params: List[str] = []
        if not self.check(TT.RPAR):
            while True:
                if len(params) >= MAX_PARAMS:
                    raise ParseError(f"Can't have more than {MAX_PARAMS} parameters.", self.current)
                param = self.expect(TT.IDENT, "Expect parameter name.")
                if param.value in params:
                    raise ParseError("Already a parameter with this name.", param)
                params.append(param.value)
                if not self.match(TT.COMMA):
                    break
        self.expect(TT.RPAR, "Expect ')' after parameters.")

        saved_loops = self.loop_depth
        self.function_depth += 1
        self.loop_depth = 0
        try:
            body = self.block("function signature")
        finally:
            self.function_depth -= 1
            self.loop_depth = saved_loops

        return FuncDecl(name.value, tuple(params), body, line=tok.line, column=tok.column)

    def struct_decl(self) -> StructDecl:
        tok = self.advance()
        name = self.expect(TT.IDENT, "Expect struct name.")
        fields: List[Tuple[str, Expr]] = []

        if not self.match(TT.COLON):
            self.end_statement()
            return StructDecl(name.value, (), line=tok.line, column=tok.column)

        self.expect(TT.NEWLINE, "Expect newline after ':' in struct declaration.")
        self.expect(TT.INDENT, "Expect indented field list.")

        seen = set()
        while not self.check(TT.DEDENT, TT.EOF):
            if self.match(TT.NEWLINE, TT.SEMI, TT.COMMA):
                continue
            field_tok = self.expect(TT.IDENT, "Expect field name.")
            if field_tok.value in seen:
                raise ParseError(f"Duplicate field '{field_tok.value}'.", field_tok)
            seen.add(field_tok.value)

            if self.match(TT.ASSIGN):
                default: Expr = self.expression()
            else:
                default = Literal(None, line=field_tok.line, column=field_tok.column)
            fields.append((field_tok.value, default))

        self.match(TT.DEDENT)
        return StructDecl(name.value, tuple(fields), line=tok.line, column=tok.column)

    def if_stmt(self) -> If:
        tok = self.advance()
        arms = [(self.expression(), self.block("if condition"))]

        while self.match(TT.PIPE):
            arms.append((self.expression(), self.block("'|' condition")))

        orelse = self.block("'else'") if self.match(TT.ELSE) else None
        return If(tuple(arms), orelse, line=tok.line, column=tok.column)

    def while_stmt(self) -> While:
        tok = self.advance()
        cond = self.expression()
        body = self.loop_body("while condition")
        return While(cond, body, line=tok.line, column=tok.column)

    def for_stmt(self) -> For:
        tok = self.advance()
        self.expect(TT.LPAR, "Expect '(' after 'for'.")

        init: Optional[Stmt]
        if self.match(TT.SEMI):
            init = None
        else:
            start = self.current
            if self.match(TT.VAR):
                init = self.var_decl_body(start)
            else:
                init = ExprStmt(self.expression(), line=start.line, column=start.column)
            self.expect(TT.SEMI, "Expect ';' after loop initializer.")

        cond = None if self.check(TT.SEMI) else self.expression()
        self.expect(TT.SEMI, "Expect ';' after loop condition.")

        step = None if self.check(TT.RPAR) else self.expression()
        self.expect(TT.RPAR, "Expect ')' after for clauses.")

        body = self.loop_body("for clauses")
        return For(init, cond, step, body, line=tok.line, column=tok.column)

    def iter_stmt(self) -> Iter:
        tok = self.advance()
        parens = self.match(TT.LPAR)
        self.match(TT.VAR)
        name = self.expect(TT.IDENT, "Expect loop variable name.")
        self.expect(TT.IN, "Expect 'in' after loop variable.")
        iterable = self.expression()
        if parens:
            self.expect(TT.RPAR, "Expect ')' after iter clause.")

        body = self.loop_body("iter clause")
        return Iter(name.value, iterable, body, line=tok.line, column=tok.column)

    # ========================================================================
    # Expressions
    # ========================================================================

    def expression(self) -> Expr:
        with self.nested():
            return self.assignment()

    def assignment(self) -> Expr:
        expr = self.logic_or()

        if self.check(TT.ASSIGN):
            eq = self.advance()
            value = self.assignment()
            if isinstance(expr, ASSIGNABLE):
                return Assign(expr, value, line=eq.line, column=eq.column)
            raise ParseError("Invalid assignment target.", eq)

        return expr

    def logic_or(self) -> Expr:
        expr = self.logic_and()
        while self.check(TT.OR):
            op = self.advance()
            expr = Logical(expr, "or", self.logic_and(), line=op.line, column=op.column)
        return expr

    def logic_and(self) -> Expr:
        expr = self.equality()
        while self.check(TT.AND):
            op = self.advance()
            expr = Logical(expr, "and", self.equality(), line=op.line, column=op.column)
        return expr

    def _binary_level(self, operand, *types: TT) -> Expr:
        expr = operand()
        while self.check(*types):
            op = self.advance()
            expr = Binary(expr, op.value, operand(), line=op.line, column=op.column)
        return expr

    def equality(self) -> Expr:
        return self._binary_level(self.comparison, TT.EQ, TT.NEQ)

    def comparison(self) -> Expr:
        return self._binary_level(self.term, TT.LT, TT.LTE, TT.GT, TT.GTE)

    def term(self) -> Expr:
        return self._binary_level(self.factor, TT.PLUS, TT.MINUS)

    def factor(self) -> Expr:
        return self._binary_level(self.unary, TT.STAR, TT.SLASH, TT.FLOORDIV, TT.MOD, TT.PERCENT)

    def unary(self) -> Expr:
        if self.check(TT.NEG, TT.MINUS):
            op = self.advance()
            with self.nested():
                operand = self.unary()
            return Unary(op.value, operand, line=op.line, column=op.column)

        if self.check(TT.INCR, TT.DECR):
            op = self.advance()
            with self.nested():
                target = self.unary()
            if not isinstance(target, ASSIGNABLE):
                raise ParseError(f"Invalid target for prefix '{op.value}'.", op)
            delta = 1 if op.type == TT.INCR else -1
            return Update(target, delta, True, line=op.line, column=op.column)

        return self.power()

    def power(self) -> Expr:
        expr = self.postfix()
        if self.check(TT.POW):
            op = self.advance()
            # right operand may itself be unary: 2 ** -1
            with self.nested():
                rhs = self.unary()
            return Binary(expr, "**", rhs, line=op.line, column=op.column)
        return expr

    def postfix(self) -> Expr:
        expr = self.primary()

        while True:
            tok = self.current

            if self.match(TT.LPAR):
                expr = Call(expr, self.arguments(), line=tok.line, column=tok.column)
            elif self.match(TT.LSQB):
                expr = self.subscript(expr, tok)
            elif self.match(TT.DOT):
                name = self.expect(TT.IDENT, "Expect field name after '.'.")
                expr = GetField(expr, name.value, line=name.line, column=name.column)
            elif self.check(TT.LBRACE) and isinstance(expr, (Variable, GetField)):
                self.advance()
                expr = self.struct_literal(expr, tok, force=False)
            elif (self.check(TT.NEG) and self.peek(1).type == TT.LBRACE
                  and isinstance(expr, (Variable, GetField))):
                self.advance()
                self.advance()
                expr = self.struct_literal(expr, tok, force=True)
            elif self.check(TT.INCR, TT.DECR):
                if not isinstance(expr, ASSIGNABLE):
                    raise ParseError(f"Invalid target for postfix '{tok.value}'.", tok)
                self.advance()
                delta = 1 if tok.type == TT.INCR else -1
                return Update(expr, delta, False, line=tok.line, column=tok.column)
            else:
                return expr

    def arguments(self) -> Tuple[Expr, ...]:
        args: List[Expr] = []
        if not self.check(TT.RPAR):
            while True:
                if len(args) >= MAX_PARAMS:
                    raise ParseError(f"Can't have more than {MAX_PARAMS} arguments.", self.current)
                args.append(self.expression())
                if not self.match(TT.COMMA) or self.check(TT.RPAR):
                    break
        self.expect(TT.RPAR, "Expect ')' after arguments.")
        return tuple(args)

    def subscript(self, obj: Expr, tok: Tok) -> Expr:
        start = None if self.check(TT.COLON) else self.expression()

        if self.match(TT.COLON):
            stop = None if self.check(TT.RSQB) else self.expression()
            self.expect(TT.RSQB, "Expect ']' after slice.")
            return Slice(obj, start, stop, line=tok.line, column=tok.column)

        self.expect(TT.RSQB, "Expect ']' after index.")
        assert start is not None
        return Index(obj, start, line=tok.line, column=tok.column)

    def struct_literal(self, struct: Expr, tok: Tok, force: bool) -> StructLit:
        fields: List[Tuple[str, Expr]] = []

        while not self.check(TT.RBRACE):
            name = self.expect(TT.IDENT, "Expect field name in struct literal.")
            self.expect(TT.ASSIGN, "Expect '=' after field name.")
            fields.append((name.value, self.expression()))
            if not self.match(TT.COMMA):
                break

        self.expect(TT.RBRACE, "Expect '}' after struct fields.")
        return StructLit(struct, tuple(fields), force, line=tok.line, column=tok.column)

    def primary(self) -> Expr:
        tok = self.current
        pos = {"line": tok.line, "column": tok.column}

        if self.match(TT.NUMBER):
            return Literal(float(tok.value), **pos)
        if self.match(TT.STRING, TT.CHAR):
            return Literal(unescape(tok.value[1:-1]), **pos)
        if self.match(TT.TRUE):
            return Literal(True, **pos)
        if self.match(TT.FALSE):
            return Literal(False, **pos)
        if self.match(TT.NULL):
            return Literal(None, **pos)
        if self.match(TT.IDENT):
            return Variable(tok.value, **pos)

        if self.match(TT.LPAR):
            expr = self.expression()
            self.expect(TT.RPAR, "Expect ')' after expression.")
            return Grouping(expr, **pos)

        if self.match(TT.LSQB):
            items: List[Expr] = []
            while not self.check(TT.RSQB):
                items.append(self.expression())
                if not self.match(TT.COMMA):
                    break
            self.expect(TT.RSQB, "Expect ']' after array elements.")
            return ArrayLit(tuple(items), **pos)

        if self.match(TT.LBRACE):
            entries: List[Tuple[Expr, Expr]] = []
            while not self.check(TT.RBRACE):
                key = self.expression()
                self.expect(TT.COLON, "Expect ':' after map key.")
                entries.append((key, self.expression()))
                if not self.match(TT.COMMA):
                    break
            self.expect(TT.RBRACE, "Expect '}' after map entries.")
            return MapLit(tuple(entries), **pos)

        raise ParseError("Expect expression.", tok)


# ============================================================================
# Entry points
# ============================================================================

def parse_source(source: str) -> Program:
    """Lex and parse a whole program, raising the first CompileError."""
    parser = Parser(Lexer(source).tokens())
    try:
        return parser.parse()
    except RecursionError:
        # the interpreter stack ran out before MAX_NESTING was reached
        raise ParseError(NESTING_MESSAGE, parser.current) from None


def parse_expr_fragment(source: str) -> Expr:
    """Parse a single expression (used by the REPL and tests)."""
    parser = Parser(Lexer(source, track_indentation=False).tokens())
    try:
        expr = parser.expression()
        while parser.match(TT.NEWLINE, TT.SEMI):
            pass
        if not parser.check(TT.EOF):
            raise ParseError("Unexpected trailing input.", parser.current)
    except RecursionError:
        parser.errors.append(ParseError(NESTING_MESSAGE, parser.current))
    except ParseError as err:
        parser.errors.append(err)

    if parser.errors:
        first = min(parser.errors, key=lambda e: (e.line or 0, e.column or 0))
        first.errors = list(parser.errors)
        raise first
    return expr

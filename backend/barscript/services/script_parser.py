from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from barscript.services.script_ast import (
    Assign,
    Binary,
    BoolLit,
    Call,
    ColorLit,
    Expr,
    ExprStmt,
    Ident,
    If,
    MemberAccess,
    NumberLit,
    Program,
    Stmt,
    StringLit,
    Ternary,
    Unary,
)
from barscript.services.script_errors import CompileResult, ScriptError
from barscript.services.script_lexer import tokenize
from barscript.services.script_tokens import (
    BOOL,
    COLOR,
    COMMA,
    DOT,
    EOF,
    IDENT,
    KEYWORD,
    LPAREN,
    NEWLINE,
    NUMBER,
    OP,
    RPAREN,
    STRING,
    VERSION,
    Token,
)

DECLARATIONS = frozenset({"indicator", "strategy"})

_COMPARISON_OPS = ("==", "!=", ">", ">=", "<", "<=")

_KIND_NAMES = {IDENT: "a name", LPAREN: "'('", RPAREN: "')'"}


def parse_color(text: str) -> int:
    """Pack ``#RRGGBB`` / ``#RRGGBBAA`` into a single 0xAARRGGBB integer."""

    hex_digits = text.lstrip("#")
    if len(hex_digits) == 6:
        return 0xFF000000 | int(hex_digits, 16)
    if len(hex_digits) == 8:
        rgba = int(hex_digits, 16)
        return ((rgba & 0xFF) << 24) | (rgba >> 8)
    raise ValueError(f"Invalid color literal '{text}'")


class _Parser:
    def __init__(self, tokens: Sequence[Token]) -> None:
        self.tokens = list(tokens)
        if not self.tokens or self.tokens[-1].kind != EOF:
            last = self.tokens[-1] if self.tokens else None
            line = last.line if last else 1
            self.tokens.append(Token(EOF, "", line, 0))
        self.pos = 0

    # Grammar:
    # program   := VERSION? declaration? (stmt NEWLINE)*
    # stmt      := 'if' expr stmt ('else' (if | stmt))? | IDENT '=' expr | expr
    # expr      := or ('?' expr ':' expr)?
    # or        := and ('or' and)*
    # and       := cmp ('and' cmp)*
    # cmp       := add (CMP_OP add)*
    # add       := mul (('+'|'-') mul)*
    # mul       := unary (('*'|'/'|'%') unary)*
    # unary     := ('-'|'not') unary | postfix
    # postfix   := primary ('.' IDENT args?)*
    # primary   := NUMBER | STRING | BOOL | COLOR | IDENT args? | '(' expr ')'

    @property
    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int = 1) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != EOF:
            self.pos += 1
        return tok

    def _error(self, message: str, tok: Token | None = None) -> ScriptError:
        tok = tok or self._current
        return ScriptError.syntax(message, tok.line, tok.column)

    def _expect(self, kind: str, text: str | None = None) -> Token:
        tok = self._current
        if tok.kind != kind or (text is not None and tok.text != text):
            wanted = f"'{text}'" if text is not None else _KIND_NAMES.get(kind, kind)
            found = "end of input" if tok.kind == EOF else f"'{tok.text}'"
            raise self._error(f"Expected {wanted} but found {found}")
        return self._advance()

    def _skip_blank(self) -> None:
        # A version comment anywhere past the header is inert.
        while self._current.kind in (NEWLINE, VERSION):
            self._advance()

    def _end_statement(self) -> None:
        tok = self._current
        if tok.kind not in (NEWLINE, EOF):
            raise self._error(f"Expected end of statement but found '{tok.text}'")

    # ------------------------------------------------------------------
    # Program and statements
    # ------------------------------------------------------------------

    def parse(self) -> Program:
        while self._current.kind == NEWLINE:
            self._advance()

        version = 1
        if self._current.kind == VERSION:
            raw = self._advance().text
            _, _, tail = raw.partition("=")
            try:
                version = int(tail.strip())
            except ValueError:
                version = 1
            self._skip_blank()

        declaration = None
        cur = self._current
        if (
            cur.kind == IDENT
            and cur.text in DECLARATIONS
            and self._peek().kind == LPAREN
        ):
            declaration = self._parse_call()
            self._end_statement()
            self._skip_blank()

        statements: List[Stmt] = []
        while self._current.kind != EOF:
            statements.append(self._parse_statement())
            self._end_statement()
            self._skip_blank()

        return Program(
            version=version,
            declaration=declaration,
            statements=tuple(statements),
        )

    def _parse_statement(self) -> Stmt:
        tok = self._current
        if tok.is_keyword("if"):
            return self._parse_if()

        if tok.kind == IDENT and self._peek().is_op("="):
            self._advance()
            self._advance()
            value = self._parse_expression()
            return Assign(tok.text, value, line=tok.line, column=tok.column)

        expr = self._parse_expression()
        if isinstance(expr, Call) and expr.name in DECLARATIONS:
            raise self._error(
                f"'{expr.name}()' must be the first statement of the script", tok
            )
        return ExprStmt(expr, line=expr.line, column=expr.column)

    def _parse_if(self) -> If:
        tok = self._expect(KEYWORD, "if")
        condition = self._parse_expression()
        self._skip_newlines()
        if self._current.kind == EOF:
            raise self._error("Expected a statement after 'if' condition")

        # Branch bodies are a single statement; there is no block syntax.
        then = self._parse_statement()

        orelse = None
        mark = self.pos
        self._skip_newlines()
        if self._current.is_keyword("else"):
            self._advance()
            self._skip_newlines()
            if self._current.kind == EOF:
                raise self._error("Expected a statement after 'else'")
            orelse = self._parse_statement()
        else:
            self.pos = mark

        return If(condition, then, orelse, line=tok.line, column=tok.column)

    def _skip_newlines(self) -> None:
        while self._current.kind == NEWLINE:
            self._advance()

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expression(self) -> Expr:
        return self._parse_ternary()

    def _parse_ternary(self) -> Expr:
        expr = self._parse_or()
        tok = self._current
        if tok.is_op("?"):
            self._advance()
            if_true = self._parse_expression()
            self._expect(OP, ":")
            if_false = self._parse_expression()
            return Ternary(expr, if_true, if_false, line=tok.line, column=tok.column)
        return expr

    def _parse_or(self) -> Expr:
        left = self._parse_and()
        while self._current.is_keyword("or"):
            tok = self._advance()
            right = self._parse_and()
            left = Binary("or", left, right, line=tok.line, column=tok.column)
        return left

    def _parse_and(self) -> Expr:
        left = self._parse_comparison()
        while self._current.is_keyword("and"):
            tok = self._advance()
            right = self._parse_comparison()
            left = Binary("and", left, right, line=tok.line, column=tok.column)
        return left

    def _parse_comparison(self) -> Expr:
        left = self._parse_additive()
        while self._current.is_op(*_COMPARISON_OPS):
            tok = self._advance()
            right = self._parse_additive()
            left = Binary(tok.text, left, right, line=tok.line, column=tok.column)
        return left

    def _parse_additive(self) -> Expr:
        left = self._parse_multiplicative()
        while self._current.is_op("+", "-"):
            tok = self._advance()
            right = self._parse_multiplicative()
            left = Binary(tok.text, left, right, line=tok.line, column=tok.column)
        return left

    def _parse_multiplicative(self) -> Expr:
        left = self._parse_unary()
        while self._current.is_op("*", "/", "%"):
            tok = self._advance()
            right = self._parse_unary()
            left = Binary(tok.text, left, right, line=tok.line, column=tok.column)
        return left

    def _parse_unary(self) -> Expr:
        tok = self._current
        if tok.is_op("-"):
            self._advance()
            return Unary("-", self._parse_unary(), line=tok.line, column=tok.column)
        if tok.is_keyword("not"):
            self._advance()
            return Unary("not", self._parse_unary(), line=tok.line, column=tok.column)
        return self._parse_postfix()

    def _parse_postfix(self) -> Expr:
        expr = self._parse_primary()
        while self._current.kind == DOT:
            dot = self._advance()
            member = self._expect(IDENT).text
            if self._current.kind == LPAREN:
                if not isinstance(expr, Ident):
                    raise self._error(
                        f"Method call '.{member}()' is only supported on names", dot
                    )
                args, kwargs = self._parse_args()
                expr = Call(
                    f"{expr.name}.{member}",
                    args,
                    kwargs,
                    line=expr.line,
                    column=expr.column,
                )
            elif isinstance(expr, Ident):
                expr = Ident(
                    f"{expr.name}.{member}", line=expr.line, column=expr.column
                )
            else:
                expr = MemberAccess(expr, member, line=dot.line, column=dot.column)
        return expr

    def _parse_primary(self) -> Expr:
        tok = self._current

        if tok.kind == NUMBER:
            self._advance()
            return NumberLit(float(tok.text), line=tok.line, column=tok.column)

        if tok.kind == STRING:
            self._advance()
            return StringLit(tok.text, line=tok.line, column=tok.column)

        if tok.kind == BOOL:
            self._advance()
            return BoolLit(tok.text == "true", line=tok.line, column=tok.column)

        if tok.kind == COLOR:
            self._advance()
            return ColorLit(parse_color(tok.text), line=tok.line, column=tok.column)

        if tok.kind == IDENT:
            if self._peek().kind == LPAREN:
                return self._parse_call()
            self._advance()
            return Ident(tok.text, line=tok.line, column=tok.column)

        if tok.kind == LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(RPAREN)
            return expr

        if tok.kind == EOF:
            raise self._error("Unexpected end of input")
        if tok.kind == NEWLINE:
            raise self._error("Unexpected end of line")
        raise self._error(f"Unexpected token '{tok.text}'")

    def _parse_call(self) -> Call:
        name_tok = self._expect(IDENT)
        args, kwargs = self._parse_args()
        return Call(
            name_tok.text,
            args,
            kwargs,
            line=name_tok.line,
            column=name_tok.column,
        )

    def _parse_args(self) -> Tuple[Tuple[Expr, ...], Tuple[Tuple[str, Expr], ...]]:
        self._expect(LPAREN)
        args: List[Expr] = []
        kwargs: Dict[str, Expr] = {}

        while self._current.kind not in (RPAREN, EOF):
            tok = self._current
            if tok.kind == IDENT and self._peek().is_op("="):
                self._advance()
                self._advance()
                if tok.text in kwargs:
                    raise self._error(f"Duplicate argument '{tok.text}'", tok)
                kwargs[tok.text] = self._parse_expression()
            else:
                args.append(self._parse_expression())

            if self._current.kind == COMMA:
                self._advance()
            elif self._current.kind != RPAREN:
                raise self._error(
                    f"Expected ',' or ')' but found '{self._current.text}'"
                    if self._current.kind != EOF
                    else "Expected ')' but found end of input"
                )

        self._expect(RPAREN)
        return tuple(args), tuple(kwargs.items())


def parse(tokens: Sequence[Token]) -> Program:
    """Parse a token stream into a ``Program``; raises ``ScriptError``."""

    return _Parser(tokens).parse()


def parse_source(text: str) -> Program:
    return parse(tokenize(text))


def compile_source(text: str) -> CompileResult:
    """Lex and parse ``text``, returning the program or the located error."""

    try:
        return CompileResult(program=parse_source(text))
    except ScriptError as exc:
        return CompileResult(error=exc)


__all__ = ["DECLARATIONS", "compile_source", "parse", "parse_color", "parse_source"]

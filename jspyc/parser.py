"""jspyc.parser

Recursive-descent parser for the script subset.

The grammar covers:

- `var`/`let`/`const` declarations and function declarations
- statements: block, if/else, while, for, return, expression statements
- expressions with the usual precedence: assignment (incl. compound forms),
  ||, &&, equality, comparison, additive, multiplicative, unary, postfix
  calls / member access / `++` `--`, and primary expressions

Errors inside a statement are recorded and the parser resynchronizes at the
next statement boundary (panic mode), so a single malformed statement never
aborts the whole parse.
"""

from __future__ import annotations

from typing import List, Optional, Set, Tuple
import logging

from jspyc.lexer import Token, TokenType
from jspyc.ast_nodes import (
    Program,
    Statement,
    Block,
    VariableDecl,
    FunctionDecl,
    IfStmt,
    WhileStmt,
    ForStmt,
    ReturnStmt,
    ExpressionStmt,
    Expression,
    Identifier,
    Literal,
    BinaryOp,
    UnaryOp,
    Assignment,
    Call,
    MemberAccess,
)

logger = logging.getLogger(__name__)


class ParserError(Exception):
    """Parser error"""
    def __init__(self, message: str, token: Optional[Token] = None):
        self.message = message
        self.token = token
        if token:
            super().__init__(f"{message} at {token.line}:{token.column} (found {token.value!r})")
        else:
            super().__init__(f"{message} at end of input")


# Keywords that begin a statement; panic-mode recovery stops in front of them.
STATEMENT_STARTERS: Set[str] = {"function", "var", "let", "const", "if", "while", "for", "return"}

DECLARATION_KEYWORDS: Set[str] = {"var", "let", "const"}

ASSIGNMENT_OPERATORS: Set[str] = {"=", "+=", "-=", "*=", "/=", "%="}


class Parser:
    """Parser for the script subset"""

    def __init__(self, tokens: List[Token]):
        self.tokens: List[Token] = list(tokens)
        self.position = 0
        self.current_token: Optional[Token] = self.tokens[0] if self.tokens else None
        self.errors: List[ParserError] = []
        self._function_depth = 0
        # Set while the additive rule reuses a negative number token as `- <number>`.
        self._strip_sign = False

    def parse(self) -> Program:
        """Parse entire program"""
        body = self._parse_statement_list(closing=None)
        if self.errors:
            logger.debug("parse finished with %d error(s)", len(self.errors))
        return Program(body=body, offset=0)

    def advance(self) -> Optional[Token]:
        """Move to next token, returning the one just consumed"""
        tok = self.current_token
        if self.position < len(self.tokens):
            self.position += 1
        self.current_token = self.tokens[self.position] if self.position < len(self.tokens) else None
        return tok

    def peek(self, offset: int = 1) -> Optional[Token]:
        """Peek ahead"""
        pos = self.position + offset
        if pos < len(self.tokens):
            return self.tokens[pos]
        return None

    def previous(self) -> Optional[Token]:
        if self.position == 0:
            return None
        return self.tokens[self.position - 1]

    # -----------------
    # Helpers
    # -----------------

    def _at_end(self) -> bool:
        return self.current_token is None

    def _check(self, t: TokenType, value: Optional[str] = None) -> bool:
        tok = self.current_token
        if tok is None or tok.type != t:
            return False
        return value is None or tok.value == value

    def _match(self, t: TokenType, value: Optional[str] = None) -> bool:
        if self._check(t, value):
            self.advance()
            return True
        return False

    def _expect(self, t: TokenType, value: Optional[str], msg: str) -> Token:
        if not self._check(t, value):
            raise ParserError(msg, self.current_token)
        return self.advance()

    def _check_punct(self, value: str) -> bool:
        return self._check(TokenType.PUNCTUATION, value)

    def _check_operator(self, *values: str) -> bool:
        tok = self.current_token
        return tok is not None and tok.type == TokenType.OPERATOR and tok.value in values

    def _check_keyword(self, *values: str) -> bool:
        tok = self.current_token
        return tok is not None and tok.type == TokenType.KEYWORD and tok.value in values

    def _synchronize(self, closing: Optional[str] = None) -> None:
        """Skip tokens until the next statement boundary.

        Inside a block the block's closing brace is a boundary too and is
        left for the block to consume.
        """
        if closing is not None and self._check_punct(closing):
            return
        self.advance()
        while not self._at_end():
            if closing is not None and self._check_punct(closing):
                return
            prev = self.previous()
            if prev is not None and prev.type == TokenType.PUNCTUATION and prev.value == ";":
                return
            if self._check_keyword(*STATEMENT_STARTERS):
                return
            self.advance()

    # -----------------
    # Statements
    # -----------------

    def _parse_statement_list(self, closing: Optional[str]) -> List[Statement]:
        statements: List[Statement] = []
        while not self._at_end():
            if closing is not None and self._check_punct(closing):
                break
            try:
                stmt = self._parse_statement()
            except ParserError as e:
                logger.debug("syntax error: %s", e)
                self.errors.append(e)
                self._synchronize(closing)
                continue
            if stmt is not None:
                statements.append(stmt)
        return statements

    def _parse_statement(self) -> Optional[Statement]:
        tok = self.current_token
        if tok is None:
            raise ParserError("Unexpected end of input")

        # Stray semicolons are empty statements
        if self._match(TokenType.PUNCTUATION, ";"):
            return None

        if self._check_punct("{"):
            return self._parse_block()

        if tok.type == TokenType.KEYWORD:
            kw = tok.value
            if kw in DECLARATION_KEYWORDS:
                return self._parse_variable_declaration()
            if kw == "function":
                return self._parse_function_declaration()
            if kw == "if":
                return self._parse_if()
            if kw == "while":
                return self._parse_while()
            if kw == "for":
                return self._parse_for()
            if kw == "return":
                return self._parse_return()
            if kw not in {"true", "false", "null", "undefined"}:
                raise ParserError(f"Unsupported statement '{kw}'", tok)

        return self._parse_expression_statement()

    def _parse_block(self) -> Block:
        open_tok = self._expect(TokenType.PUNCTUATION, "{", "Expected '{'.")
        statements = self._parse_statement_list(closing="}")
        self._expect(TokenType.PUNCTUATION, "}", "Expected '}' after block.")
        return Block(statements=statements, offset=open_tok.offset)

    def _parse_variable_declaration(self) -> VariableDecl:
        kw = self.advance()
        name_tok = self._expect(TokenType.IDENTIFIER, None, f"Expected identifier after {kw.value}.")
        init = None
        if self._match(TokenType.OPERATOR, "="):
            init = self._parse_expression()
        self._expect(TokenType.PUNCTUATION, ";", "Expected ';' after variable declaration.")
        return VariableDecl(name=name_tok.value, declaration=kw.value, init=init, offset=kw.offset)

    def _parse_function_declaration(self) -> FunctionDecl:
        kw = self.advance()
        name_tok = self._expect(TokenType.IDENTIFIER, None, "Expected function name.")
        self._expect(TokenType.PUNCTUATION, "(", "Expected '(' after function name.")
        params: List[str] = []
        if not self._check_punct(")"):
            while True:
                param = self._expect(TokenType.IDENTIFIER, None, "Expected parameter name.")
                if param.value in params:
                    # Reported, but the declaration still parses with one copy.
                    self.errors.append(ParserError(f"Duplicate parameter name '{param.value}'.", param))
                else:
                    params.append(param.value)
                if not self._match(TokenType.PUNCTUATION, ","):
                    break
        self._expect(TokenType.PUNCTUATION, ")", "Expected ')' after function parameters.")
        if not self._check_punct("{"):
            raise ParserError("Expected '{' before function body.", self.current_token)
        self._function_depth += 1
        try:
            body = self._parse_block()
        finally:
            self._function_depth -= 1
        return FunctionDecl(name=name_tok.value, params=params, body=body, offset=kw.offset)

    def _parse_if(self) -> IfStmt:
        kw = self.advance()
        self._expect(TokenType.PUNCTUATION, "(", "Expected '(' after 'if'.")
        test = self._parse_expression()
        self._expect(TokenType.PUNCTUATION, ")", "Expected ')' after if condition.")
        consequent = self._parse_body()
        alternate = None
        if self._match(TokenType.KEYWORD, "else"):
            alternate = self._parse_body()
        return IfStmt(test=test, consequent=consequent, alternate=alternate, offset=kw.offset)

    def _parse_while(self) -> WhileStmt:
        kw = self.advance()
        self._expect(TokenType.PUNCTUATION, "(", "Expected '(' after 'while'.")
        test = self._parse_expression()
        self._expect(TokenType.PUNCTUATION, ")", "Expected ')' after while condition.")
        body = self._parse_body()
        return WhileStmt(test=test, body=body, offset=kw.offset)

    def _parse_for(self) -> ForStmt:
        kw = self.advance()
        self._expect(TokenType.PUNCTUATION, "(", "Expected '(' after 'for'.")

        init: Optional[Statement] = None
        if self._check_keyword(*DECLARATION_KEYWORDS):
            init = self._parse_variable_declaration()
        elif not self._match(TokenType.PUNCTUATION, ";"):
            init = self._parse_expression_statement()

        test = None
        if not self._check_punct(";"):
            test = self._parse_expression()
        self._expect(TokenType.PUNCTUATION, ";", "Expected ';' after for loop condition.")

        update = None
        if not self._check_punct(")"):
            update = self._parse_expression()
        self._expect(TokenType.PUNCTUATION, ")", "Expected ')' after for clauses.")

        body = self._parse_body()
        return ForStmt(init=init, test=test, update=update, body=body, offset=kw.offset)

    def _parse_return(self) -> ReturnStmt:
        kw = self.advance()
        if self._function_depth == 0:
            raise ParserError("'return' outside of a function", kw)
        value = None
        if not self._check_punct(";"):
            value = self._parse_expression()
        self._expect(TokenType.PUNCTUATION, ";", "Expected ';' after return value.")
        return ReturnStmt(value=value, offset=kw.offset)

    def _parse_expression_statement(self) -> ExpressionStmt:
        start = self.current_token
        expr = self._parse_expression()
        self._expect(TokenType.PUNCTUATION, ";", "Expected ';' after expression.")
        return ExpressionStmt(expression=expr, offset=start.offset)

    def _parse_body(self) -> Statement:
        """Statement used as a loop/conditional body; `;` alone is an empty block."""
        tok = self.current_token
        stmt = self._parse_statement()
        if stmt is None:
            return Block(statements=[], offset=tok.offset)
        return stmt

    # -----------------
    # Expressions
    # -----------------

    def _parse_expression(self) -> Expression:
        return self._parse_assignment()

    def _parse_assignment(self) -> Expression:
        left = self._parse_logical_or()
        if self._check_operator(*ASSIGNMENT_OPERATORS):
            op_tok = self.advance()
            if not isinstance(left, (Identifier, MemberAccess)):
                raise ParserError("Invalid assignment target.", op_tok)
            right = self._parse_assignment()
            return Assignment(target=left, operator=op_tok.value, value=right, offset=op_tok.offset)
        return left

    def _parse_logical_or(self) -> Expression:
        expr = self._parse_logical_and()
        while self._check_operator("||"):
            op = self.advance()
            rhs = self._parse_logical_and()
            expr = BinaryOp(operator=op.value, left=expr, right=rhs, offset=op.offset)
        return expr

    def _parse_logical_and(self) -> Expression:
        expr = self._parse_equality()
        while self._check_operator("&&"):
            op = self.advance()
            rhs = self._parse_equality()
            expr = BinaryOp(operator=op.value, left=expr, right=rhs, offset=op.offset)
        return expr

    def _parse_equality(self) -> Expression:
        expr = self._parse_comparison()
        while self._check_operator("==", "!=", "===", "!=="):
            op = self.advance()
            rhs = self._parse_comparison()
            expr = BinaryOp(operator=op.value, left=expr, right=rhs, offset=op.offset)
        return expr

    def _parse_comparison(self) -> Expression:
        expr = self._parse_additive()
        while self._check_operator("<", ">", "<=", ">="):
            op = self.advance()
            rhs = self._parse_additive()
            expr = BinaryOp(operator=op.value, left=expr, right=rhs, offset=op.offset)
        return expr

    def _parse_additive(self) -> Expression:
        expr = self._parse_multiplicative()
        while True:
            if self._check_operator("+", "-"):
                op = self.advance()
                rhs = self._parse_multiplicative()
                expr = BinaryOp(operator=op.value, left=expr, right=rhs, offset=op.offset)
                continue
            tok = self.current_token
            if tok is not None and tok.type == TokenType.NUMBER and tok.value.startswith("-"):
                # `n-1` lexes as `n` `-1`: read it as a subtraction of `1`.
                self._strip_sign = True
                rhs = self._parse_multiplicative()
                expr = BinaryOp(operator="-", left=expr, right=rhs, offset=tok.offset)
                continue
            return expr

    def _parse_multiplicative(self) -> Expression:
        expr = self._parse_unary()
        while self._check_operator("*", "/", "%"):
            op = self.advance()
            rhs = self._parse_unary()
            expr = BinaryOp(operator=op.value, left=expr, right=rhs, offset=op.offset)
        return expr

    def _parse_unary(self) -> Expression:
        tok = self.current_token
        if self._check_operator("!", "-", "+"):
            self.advance()
            operand = self._parse_unary()
            return UnaryOp(operator=tok.value, operand=operand, offset=tok.offset)
        if self._check_operator("++", "--"):
            self.advance()
            target = self._parse_unary()
            return self._increment(target, tok)
        return self._parse_postfix()

    def _parse_postfix(self) -> Expression:
        expr = self._parse_primary()
        while True:
            if self._match(TokenType.PUNCTUATION, "("):
                args: List[Expression] = []
                if not self._check_punct(")"):
                    args.append(self._parse_expression())
                    while self._match(TokenType.PUNCTUATION, ","):
                        args.append(self._parse_expression())
                self._expect(TokenType.PUNCTUATION, ")", "Expected ')' after arguments.")
                expr = Call(callee=expr, arguments=args, offset=expr.offset)
                continue
            if self._match(TokenType.PUNCTUATION, "["):
                index = self._parse_expression()
                self._expect(TokenType.PUNCTUATION, "]", "Expected ']' after index.")
                expr = MemberAccess(object=expr, property=index, computed=True, offset=expr.offset)
                continue
            if self._match(TokenType.OPERATOR, "."):
                tok = self.current_token
                if tok is None or tok.type not in (TokenType.IDENTIFIER, TokenType.KEYWORD):
                    raise ParserError("Expected property name after '.'.", tok)
                self.advance()
                prop = Identifier(name=tok.value, offset=tok.offset)
                expr = MemberAccess(object=expr, property=prop, computed=False, offset=expr.offset)
                continue
            break
        if self._check_operator("++", "--"):
            tok = self.advance()
            return self._increment(expr, tok, postfix=True)
        return expr

    def _parse_primary(self) -> Expression:
        tok = self.current_token
        if tok is None:
            raise ParserError("Unexpected end of input")

        if tok.type == TokenType.NUMBER:
            self.advance()
            raw = tok.value
            if self._strip_sign:
                raw = raw[1:]
                self._strip_sign = False
            value = float(raw) if "." in raw else int(raw)
            return Literal(value=value, raw=raw, offset=tok.offset)

        if tok.type == TokenType.STRING:
            raw = tok.value
            if not _string_terminated(raw):
                raise ParserError("Unterminated string literal.", tok)
            self.advance()
            return Literal(value=raw[1:-1], raw=raw, offset=tok.offset)

        if tok.type == TokenType.KEYWORD:
            constants = {"true": True, "false": False, "null": None, "undefined": None}
            if tok.value in constants:
                self.advance()
                return Literal(value=constants[tok.value], raw=tok.value, offset=tok.offset)

        if tok.type == TokenType.IDENTIFIER:
            self.advance()
            return Identifier(name=tok.value, offset=tok.offset)

        if self._match(TokenType.PUNCTUATION, "("):
            expr = self._parse_expression()
            self._expect(TokenType.PUNCTUATION, ")", "Expected ')' after expression.")
            return expr

        raise ParserError("Unexpected token", tok)

    def _increment(self, target: Expression, op_tok: Token, postfix: bool = False) -> Assignment:
        if not isinstance(target, (Identifier, MemberAccess)):
            raise ParserError("Invalid increment/decrement target.", op_tok)
        one = Literal(value=1, raw="1", offset=op_tok.offset)
        operator = "+=" if op_tok.value == "++" else "-="
        return Assignment(target=target, operator=operator, value=one, postfix=postfix, offset=op_tok.offset)


def _string_terminated(raw: str) -> bool:
    quote = raw[0]
    i = 1
    while i < len(raw):
        if raw[i] == "\\":
            i += 2
            continue
        if raw[i] == quote:
            return i == len(raw) - 1
        i += 1
    return False


def parse(tokens: List[Token]) -> Tuple[Program, List[ParserError]]:
    """Parse `tokens`, returning the best-effort program and the recorded errors."""
    parser = Parser(tokens)
    program = parser.parse()
    return program, parser.errors

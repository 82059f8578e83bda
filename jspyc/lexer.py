"""
Lexical Analyzer (Lexer) for the jspyc compiler

Converts script source text into a flat stream of tokens for the parser.
The lexer never fails on content: characters it does not recognize become
UNKNOWN tokens and are reported as anomalies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set
import logging

logger = logging.getLogger(__name__)


class TokenType(str, Enum):
    """Token kinds produced by the lexer"""
    KEYWORD = "keyword"
    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Token:
    """Represents a lexical token"""
    type: TokenType
    value: str
    offset: int
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"

    def to_dict(self) -> dict:
        return {"type": self.type.value, "value": self.value, "offset": self.offset}


class LexerError(Exception):
    """Lexical anomaly with line and column information (recorded, not raised)"""
    def __init__(self, message: str, line: int, column: int):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"{message} at {line}:{column}")


class Lexer:
    """Lexical analyzer for script source code"""

    KEYWORDS: Set[str] = {
        'var', 'let', 'const', 'if', 'else', 'for', 'while', 'do',
        'function', 'return', 'break', 'continue', 'switch', 'case',
        'default', 'true', 'false', 'null', 'undefined',
    }

    # Longest operators first; the scanner tries each group in order.
    THREE_CHAR_OPERATORS: Set[str] = {'===', '!=='}
    TWO_CHAR_OPERATORS: Set[str] = {
        '==', '!=', '<=', '>=', '&&', '||',
        '++', '--', '+=', '-=', '*=', '/=', '%=',
    }
    OPERATOR_CHARS = '+-*/=<>!&|^%?:.'
    PUNCTUATION_CHARS = '(){}[],;'

    def __init__(self, source: str):
        """Initialize lexer with source code"""
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []
        self.errors: List[LexerError] = []

    def current_char(self) -> Optional[str]:
        """Get current character without consuming"""
        if self.position >= len(self.source):
            return None
        return self.source[self.position]

    def peek_char(self, offset: int = 1) -> Optional[str]:
        """Peek ahead at character"""
        pos = self.position + offset
        if pos >= len(self.source):
            return None
        return self.source[pos]

    def advance(self) -> Optional[str]:
        """Consume and return current character"""
        if self.position >= len(self.source):
            return None

        char = self.source[self.position]
        self.position += 1

        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1

        return char

    def skip_whitespace(self) -> None:
        while self.current_char() is not None and self.current_char().isspace():
            self.advance()

    def skip_line_comment(self) -> None:
        """Skip single-line comment (//...)"""
        self.advance()  # skip first /
        self.advance()  # skip second /

        while self.current_char() is not None and self.current_char() != '\n':
            self.advance()

    def skip_block_comment(self) -> None:
        """Skip multi-line comment (/* ... */)"""
        line, column = self.line, self.column
        self.advance()  # skip /
        self.advance()  # skip *

        while self.current_char() is not None:
            if self.current_char() == '*' and self.peek_char() == '/':
                self.advance()  # skip *
                self.advance()  # skip /
                return
            self.advance()

        # Reached EOF without closing comment; the rest of the input is discarded.
        self._anomaly("Unterminated block comment", line, column)

    def read_string(self) -> str:
        """Read string literal, returning the lexeme including its quotes.

        A backslash skips the following character without interpreting it.
        """
        start = self.position
        line, column = self.line, self.column
        quote_char = self.advance()

        while self.current_char() is not None and self.current_char() != quote_char:
            if self.current_char() == '\\':
                self.advance()
            self.advance()

        if self.current_char() == quote_char:
            self.advance()  # skip closing quote
        else:
            self._anomaly("Unterminated string", line, column)

        return self.source[start:self.position]

    def read_number(self) -> str:
        """Read number literal: optional leading '-', digits, at most one '.'"""
        start = self.position
        if self.current_char() == '-':
            self.advance()

        has_dot = False
        while self.current_char() is not None:
            char = self.current_char()
            if self._is_digit(char):
                self.advance()
            elif char == '.' and not has_dot:
                has_dot = True
                self.advance()
            else:
                break

        return self.source[start:self.position]

    def read_identifier(self) -> str:
        """Read identifier or keyword"""
        start = self.position
        while self.current_char() is not None and (self._is_ascii_alnum(self.current_char()) or self.current_char() == '_'):
            self.advance()
        return self.source[start:self.position]

    def read_operator(self) -> str:
        for width, group in ((3, self.THREE_CHAR_OPERATORS), (2, self.TWO_CHAR_OPERATORS)):
            candidate = self.source[self.position:self.position + width]
            if candidate in group:
                for _ in range(width):
                    self.advance()
                return candidate
        return self.advance()

    def tokenize(self) -> List[Token]:
        """Tokenize entire source code"""
        self.tokens = []
        self.errors = []

        while self.position < len(self.source):
            self.skip_whitespace()

            if self.position >= len(self.source):
                break

            # Save token start position
            token_offset = self.position
            token_line = self.line
            token_column = self.column

            char = self.current_char()
            nxt = self.peek_char()

            # Comments
            if char == '/' and nxt == '/':
                self.skip_line_comment()
                continue
            if char == '/' and nxt == '*':
                self.skip_block_comment()
                continue

            if self._is_ascii_alpha(char) or char == '_':
                ident = self.read_identifier()
                kind = TokenType.KEYWORD if ident in self.KEYWORDS else TokenType.IDENTIFIER
                self._add(kind, ident, token_offset, token_line, token_column)

            elif self._is_digit(char) or (char == '-' and nxt is not None and self._is_digit(nxt)):
                value = self.read_number()
                self._add(TokenType.NUMBER, value, token_offset, token_line, token_column)

            elif char in ('"', "'"):
                value = self.read_string()
                self._add(TokenType.STRING, value, token_offset, token_line, token_column)

            elif char in self.OPERATOR_CHARS:
                value = self.read_operator()
                self._add(TokenType.OPERATOR, value, token_offset, token_line, token_column)

            elif char in self.PUNCTUATION_CHARS:
                self.advance()
                self._add(TokenType.PUNCTUATION, char, token_offset, token_line, token_column)

            else:
                self.advance()
                self._anomaly(f"Unexpected character {char!r}", token_line, token_column)
                self._add(TokenType.UNKNOWN, char, token_offset, token_line, token_column)

        logger.debug("lexed %d tokens (%d anomalies)", len(self.tokens), len(self.errors))
        return self.tokens

    def has_errors(self) -> bool:
        """Check if any lexical anomalies were recorded"""
        return len(self.errors) > 0

    def get_errors(self) -> List[LexerError]:
        return self.errors

    # -----------------
    # Helpers
    # -----------------

    def _add(self, kind: TokenType, value: str, offset: int, line: int, column: int) -> None:
        self.tokens.append(Token(kind, value, offset, line, column))

    def _anomaly(self, message: str, line: int, column: int) -> None:
        err = LexerError(message, line, column)
        logger.warning("lexer: %s", err)
        self.errors.append(err)

    @staticmethod
    def _is_digit(char: str) -> bool:
        return '0' <= char <= '9'

    @staticmethod
    def _is_ascii_alpha(char: str) -> bool:
        return ('a' <= char <= 'z') or ('A' <= char <= 'Z')

    @classmethod
    def _is_ascii_alnum(cls, char: str) -> bool:
        return cls._is_ascii_alpha(char) or ('0' <= char <= '9')


def tokenize(source: str) -> List[Token]:
    """Tokenize `source` with a fresh lexer."""
    return Lexer(source).tokenize()

"""
Free-text classification and a small recursive-descent parser for boolean
search terms.

Grammar::

    query   := or_expr
    or_expr := and_expr ("OR" and_expr)*
    and_expr:= unary (["AND"] unary)*
    unary   := "(" or_expr ")" | PHRASE | WORD+

Consecutive bare words collapse into a single ``Term``; quoted text always
becomes a ``Phrase``. Adjacent units without an operator are AND-ed.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from ..errors import QuerySyntaxError


DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9-]+\.[a-zA-Z]{2,}$")
OPERATOR_PATTERN = re.compile(r'("[^"]+"|\bAND\b|\bOR\b|\(|\))')


class SearchStrategy(str, Enum):
    DOMAIN = "domain"
    STRUCTURED = "structured"
    GENERAL = "general"


@dataclass(frozen=True)
class Term:
    value: str


@dataclass(frozen=True)
class Phrase:
    value: str


@dataclass(frozen=True)
class And:
    children: Tuple["ParsedTerm", ...]


@dataclass(frozen=True)
class Or:
    children: Tuple["ParsedTerm", ...]


ParsedTerm = Union[Term, Phrase, And, Or]


def is_domain_like(text: str) -> bool:
    """True when the text looks like a website, domain or URL"""
    lowered = text.lower()
    return (
        "." in text
        or "www" in lowered
        or "http" in lowered
        or DOMAIN_PATTERN.match(text) is not None
    )


def has_boolean_operators(text: str) -> bool:
    """True when the text holds a quoted phrase, AND/OR or parentheses"""
    return OPERATOR_PATTERN.search(text) is not None


def classify(text: str) -> SearchStrategy:
    """Pick the text-search strategy for a raw query string"""
    if is_domain_like(text):
        return SearchStrategy.DOMAIN
    if has_boolean_operators(text):
        return SearchStrategy.STRUCTURED
    return SearchStrategy.GENERAL


# Token kinds
_LPAREN = "LPAREN"
_RPAREN = "RPAREN"
_AND = "AND"
_OR = "OR"
_PHRASE = "PHRASE"
_WORD = "WORD"

Token = Tuple[str, str]


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if char.isspace():
            i += 1
        elif char == "(":
            tokens.append((_LPAREN, char))
            i += 1
        elif char == ")":
            tokens.append((_RPAREN, char))
            i += 1
        elif char == '"':
            i, phrase = _read_phrase(text, i + 1)
            tokens.append((_PHRASE, phrase))
        else:
            start = i
            while i < length and not text[i].isspace() and text[i] not in '()"':
                i += 1
            word = text[start:i]
            if word == "AND":
                tokens.append((_AND, word))
            elif word == "OR":
                tokens.append((_OR, word))
            else:
                tokens.append((_WORD, word))
    return tokens


def _read_phrase(text: str, start: int) -> Tuple[int, str]:
    chars = []
    i = start
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text) and text[i + 1] == '"':
            chars.append('"')
            i += 2
            continue
        if char == '"':
            phrase = "".join(chars).strip()
            if not phrase:
                raise QuerySyntaxError(f"Empty phrase at position {start - 1}")
            return i + 1, phrase
        chars.append(char)
        i += 1
    raise QuerySyntaxError(f"Unbalanced quote at position {start - 1}")


class TermParser:
    """Parses boolean search terms into a ``ParsedTerm`` tree"""

    def parse(self, text: str) -> ParsedTerm:
        self._tokens = tokenize(text)
        self._pos = 0
        if not self._tokens:
            raise QuerySyntaxError("Empty query")

        node = self._parse_or()
        if self._pos != len(self._tokens):
            _, value = self._tokens[self._pos]
            raise QuerySyntaxError(f"Unexpected {value!r} at token {self._pos}")
        return node

    def _peek(self) -> Optional[str]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos][0]
        return None

    def _next(self) -> Token:
        if self._pos >= len(self._tokens):
            raise QuerySyntaxError("Unexpected end of query")
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _parse_or(self) -> ParsedTerm:
        children = [self._parse_and()]
        while self._peek() == _OR:
            self._next()
            children.append(self._parse_and())
        return children[0] if len(children) == 1 else Or(tuple(children))

    def _parse_and(self) -> ParsedTerm:
        children = [self._parse_unary()]
        while True:
            kind = self._peek()
            if kind == _AND:
                self._next()
                children.append(self._parse_unary())
            elif kind in (_WORD, _PHRASE, _LPAREN):
                # implicit AND between adjacent units
                children.append(self._parse_unary())
            else:
                break
        return children[0] if len(children) == 1 else And(tuple(children))

    def _parse_unary(self) -> ParsedTerm:
        kind, value = self._next()
        if kind == _LPAREN:
            node = self._parse_or()
            if self._peek() != _RPAREN:
                raise QuerySyntaxError("Unbalanced parenthesis")
            self._next()
            return node
        if kind == _PHRASE:
            return Phrase(value)
        if kind == _WORD:
            words = [value]
            while self._peek() == _WORD:
                words.append(self._next()[1])
            return Term(" ".join(words))
        raise QuerySyntaxError(f"Unexpected {value!r}")

"""
goal: split raw text into typed tokens for word-level diffing and compute a normalized comparison key
      for each token. the key is what the LCS aligner compares, the render string is what gets shown.

how a token is cut:
- every CJK ideograph is its own token (there are no spaces between CJK words to split on)
- a run of ASCII word characters and apostrophes is one token ("don't" stays whole)
- a run of whitespace is one token
- any other run of characters (punctuation, symbols, non-ASCII letters) is one token

how a key is derived (always in this order):
1. fullwidth ASCII and the ideographic space are folded to their halfwidth forms
2. ignore_case lowercases
3. ignore_punctuation strips Unicode punctuation and symbol characters
4. ignore_whitespace strips all whitespace, otherwise leading/trailing whitespace is trimmed
   (a key that is nothing but whitespace is kept as is so "  " and " " still differ)
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Literal

TokenKind = Literal["cjk", "word", "space", "symbol"]

# CJK unified ideographs block used for per-character splitting
_CJK = "\u4e00-\u9fa5"

# one alternative per token kind, the named group tells us which kind matched
_TOKEN_RE = re.compile(
    rf"(?P<cjk>[{_CJK}])"
    r"|(?P<word>[A-Za-z0-9_']+)"
    r"|(?P<space>\s+)"
    rf"|(?P<symbol>[^\sA-Za-z0-9_'{_CJK}]+)"
)

_FULLWIDTH_RE = re.compile("[\uff01-\uff5e]")
_WHITESPACE_RE = re.compile(r"\s+")

_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off", "")


def parse_flag(value: Any, default: bool = False) -> bool:
    """
    read an on/off option from JSON or a form. real booleans, 0/1 and the usual words are accepted,
    so the string "false" stays False. anything else raises ValueError.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValueError(f"expected a boolean flag, got {value!r}")


@dataclass(frozen=True)
class NormalizationSettings:
    """the three comparison flags. every combination is valid."""

    ignore_case: bool = False
    ignore_punctuation: bool = False
    ignore_whitespace: bool = False

    @classmethod
    def from_dict(cls, obj: dict | None) -> NormalizationSettings:
        # accept both snake_case and the camelCase names a browser form sends
        obj = obj or {}
        if not isinstance(obj, dict):
            raise ValueError("settings must be an object")
        return cls(
            ignore_case=parse_flag(obj.get("ignore_case", obj.get("ignoreCase"))),
            ignore_punctuation=parse_flag(
                obj.get("ignore_punctuation", obj.get("ignorePunctuation"))
            ),
            ignore_whitespace=parse_flag(
                obj.get("ignore_whitespace", obj.get("ignoreWhitespace"))
            ),
        )

    def to_dict(self) -> dict[str, bool]:
        return {
            "ignore_case": self.ignore_case,
            "ignore_punctuation": self.ignore_punctuation,
            "ignore_whitespace": self.ignore_whitespace,
        }


@dataclass(frozen=True)
class Token:
    render: str  # exact substring of the source text
    key: str  # normalized value used for equality only
    kind: TokenKind = "symbol"


def _is_punct_or_symbol(ch: str) -> bool:
    # Unicode general categories P* (punctuation) and S* (symbols)
    return unicodedata.category(ch)[0] in ("P", "S")


def _fold_width(text: str) -> str:
    # U+FF01..U+FF5E sit exactly 0xFEE0 above their ASCII counterparts
    folded = _FULLWIDTH_RE.sub(lambda m: chr(ord(m.group(0)) - 0xFEE0), text)
    return folded.replace("\u3000", " ")


def diff_key(text: str, settings: NormalizationSettings) -> str:
    """normalized comparison key for a token or a whole line."""
    key = _fold_width(text)

    if settings.ignore_case:
        key = key.lower()

    if settings.ignore_punctuation:
        key = "".join(ch for ch in key if not _is_punct_or_symbol(ch))

    if settings.ignore_whitespace:
        return _WHITESPACE_RE.sub("", key)

    # whitespace-only keys keep their exact width
    stripped = key.strip()
    return stripped if stripped else key


def is_pure_punctuation(text: str) -> bool:
    return bool(text) and all(_is_punct_or_symbol(ch) for ch in text)


def is_pure_whitespace(text: str) -> bool:
    return bool(text) and text.isspace()


def _keep(render: str, settings: NormalizationSettings) -> bool:
    # filtered tokens are invisible in both the comparison and the rendered spans
    if settings.ignore_punctuation and is_pure_punctuation(render):
        return False
    if settings.ignore_whitespace and is_pure_whitespace(render):
        return False
    return True


def tokenize(text: str, settings: NormalizationSettings | None = None) -> list[Token]:
    """
    split text into tokens. with ignore_punctuation and ignore_whitespace both off, joining the
    render strings of the result gives back the input exactly.
    """
    if not text:
        return []
    settings = settings or NormalizationSettings()

    tokens: list[Token] = []
    for match in _TOKEN_RE.finditer(text):
        render = match.group(0)
        if not _keep(render, settings):
            continue
        kind: TokenKind = match.lastgroup  # type: ignore[assignment]
        tokens.append(Token(render=render, key=diff_key(render, settings), kind=kind))
    return tokens

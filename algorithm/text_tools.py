"""
goal: the small single-purpose text helpers behind the case converter, word counter, Base64 tool,
      JSON formatter and Lorem Ipsum generator. each one is a plain function of its input (the
      Lorem generator also takes its random source as an argument).
"""

from __future__ import annotations

import base64
import binascii
import json
import random
import re
from collections.abc import Callable
from typing import Any

_SENTENCE_START_RE = re.compile(r"(^\s*\w|[.!?]\s*\w|\n\s*\w)")
_WORD_START_RE = re.compile(r"\b\w")
_SENTENCE_END_RE = re.compile(r"[.!?]+(\s|$)")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_WS_RE = re.compile(r"\s+")

CASE_MODES = ("upper", "lower", "sentence", "title")


def to_sentence_case(text: str) -> str:
    # first letter of the text, after sentence punctuation, or after a newline
    return _SENTENCE_START_RE.sub(lambda m: m.group(0).upper(), text.lower())


def to_title_case(text: str) -> str:
    return _WORD_START_RE.sub(lambda m: m.group(0).upper(), text.lower())


def convert_case(text: str, mode: str) -> str:
    if mode == "upper":
        return text.upper()
    if mode == "lower":
        return text.lower()
    if mode == "sentence":
        return to_sentence_case(text)
    if mode == "title":
        return to_title_case(text)
    raise ValueError(f"unknown case mode: {mode}")


def text_stats(text: str) -> dict[str, Any]:
    """word counter numbers for a block of text."""
    trimmed = text.strip()
    return {
        "words": len(_WS_RE.split(trimmed)) if trimmed else 0,
        "chars": len(text),
        "chars_no_space": len(_WS_RE.sub("", text)),
        "sentences": len(_SENTENCE_END_RE.findall(text)) if trimmed else 0,
        "paragraphs": (
            len([p for p in re.split(r"\n+", text) if p.strip()]) if trimmed else 0
        ),
    }


def encode_base64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_base64(data: str) -> str:
    """decode Base64 back to text. whitespace inside the input is ignored."""
    normalized = _WS_RE.sub("", data)
    return base64.b64decode(normalized, validate=True).decode("utf-8")


def is_valid_base64(data: str) -> bool:
    normalized = _WS_RE.sub("", data)
    if not normalized or len(normalized) % 4 != 0:
        return False
    if not _BASE64_RE.match(normalized):
        return False
    try:
        base64.b64decode(normalized, validate=True)
        return True
    except (binascii.Error, ValueError):
        return False


# ---------------- JSON formatter ----------------

JSON_ACTIONS = ("format", "minify", "sort", "repair")

_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
_UNQUOTED_KEY_RE = re.compile(r"([{,]\s*)([a-zA-Z_$][\w$]*)\s*:")


def format_json(text: str, indent: int = 2) -> str:
    """pretty-print JSON. blank input gives "", invalid JSON raises ValueError."""
    if not text.strip():
        return ""
    return json.dumps(json.loads(text), indent=indent, ensure_ascii=False)


def minify_json(text: str) -> str:
    if not text.strip():
        return ""
    return json.dumps(json.loads(text), separators=(",", ":"), ensure_ascii=False)


def sort_json_keys(text: str, indent: int = 2) -> str:
    # sort_keys recurses into nested objects, arrays keep their order
    if not text.strip():
        return ""
    return json.dumps(json.loads(text), indent=indent, sort_keys=True, ensure_ascii=False)


def repair_json(text: str, indent: int = 2) -> str:
    """
    fix the two mistakes hand-written JSON usually has, trailing commas and unquoted keys, then
    pretty-print. only structural fixes, single quotes are left alone. still invalid -> ValueError.
    """
    if not text.strip():
        return ""
    fixed = _TRAILING_COMMA_RE.sub(r"\1", text)
    fixed = _UNQUOTED_KEY_RE.sub(r'\1"\2":', fixed)
    return format_json(fixed, indent)


def transform_json(text: str, action: str, indent: int = 2) -> str:
    if action == "format":
        return format_json(text, indent)
    if action == "minify":
        return minify_json(text)
    if action == "sort":
        return sort_json_keys(text, indent)
    if action == "repair":
        return repair_json(text, indent)
    raise ValueError(f"unknown JSON action: {action}")


# ---------------- Lorem Ipsum ----------------

LOREM_WORDS = (
    "lorem ipsum dolor sit amet consectetur adipiscing elit sed do eiusmod tempor incididunt ut "
    "labore et dolore magna aliqua enim ad minim veniam quis nostrud exercitation ullamco laboris "
    "nisi ut aliquip ex ea commodo consequat duis aute irure dolor in reprehenderit in voluptate "
    "velit esse cillum dolore eu fugiat nulla pariatur excepteur sint occaecat cupidatat non "
    "proident sunt in culpa qui officia deserunt mollit anim id est laborum"
).split()

LOREM_OPENING = ("lorem", "ipsum", "dolor", "sit", "amet")
LOREM_TYPES = ("paragraphs", "sentences", "words")

# largest amount generated per type, bigger requests are clamped
MAX_LIMITS = {"paragraphs": 50, "sentences": 100, "words": 1000}

# takes n, returns an int in [0, n)
RandRangeFn = Callable[[int], int]


def _lorem_sentence(opening: bool, randrange: RandRangeFn) -> str:
    # 5 to 14 words, the opening words count towards the length
    length = randrange(10) + 5
    words = list(LOREM_OPENING) if opening else []
    while len(words) < length:
        words.append(LOREM_WORDS[randrange(len(LOREM_WORDS))])
    sentence = " ".join(words)
    return sentence[0].upper() + sentence[1:] + "."


def _lorem_paragraph(opening: bool, randrange: RandRangeFn) -> str:
    count = randrange(3) + 3
    return " ".join(_lorem_sentence(opening and i == 0, randrange) for i in range(count))


def generate_lorem(
    kind: str,
    amount: int,
    start_with_lorem: bool = True,
    randrange: RandRangeFn = random.randrange,
) -> str:
    """
    placeholder text: `amount` paragraphs (blank-line separated), sentences or words, clamped to
    MAX_LIMITS. not for anything secret, the default source is the non-cryptographic random module.
    """
    if kind not in MAX_LIMITS:
        raise ValueError(f"unknown lorem type: {kind}")
    amount = min(amount, MAX_LIMITS[kind])
    if amount <= 0:
        return ""

    if kind == "words":
        words = list(LOREM_OPENING) if start_with_lorem else []
        while len(words) < amount:
            words.append(LOREM_WORDS[randrange(len(LOREM_WORDS))])
        return " ".join(words[:amount])

    if kind == "sentences":
        return " ".join(
            _lorem_sentence(start_with_lorem and i == 0, randrange) for i in range(amount)
        )

    return "\n\n".join(
        _lorem_paragraph(start_with_lorem and i == 0, randrange) for i in range(amount)
    )

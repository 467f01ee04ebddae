"""
goal: random password generator. every character comes from the OS CSPRNG through a rejection
      sampler, so no index is more likely than another (no modulo bias).

how a password is built:
1. one character from each active pool, so every selected class is guaranteed to appear
2. the rest of the length filled from the union of the active pools
3. a Fisher-Yates shuffle over the whole thing, so position says nothing about which characters
   were the guaranteed ones

an unusable configuration (no class selected, or nothing left after removing ambiguous characters)
is a normal UI state, not an error: it produces an empty password and zero entropy.
"""

from __future__ import annotations

import logging
import math
import secrets
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from algorithm.tokenizer import parse_flag

password_logger = logging.getLogger("tooldeck.password")

CHARSETS: dict[str, str] = {
    "uppercase": "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
    "lowercase": "abcdefghijklmnopqrstuvwxyz",
    "digits": "0123456789",
    "symbols": "!@#$%^&*()_+~`|}{[]:;?><,./-=",
}
AMBIGUOUS = "Il1O0"

# fixed pool order, independent of the order classes were passed in
CLASS_ORDER = ("uppercase", "lowercase", "digits", "symbols")

# older clients call the digit pool "numbers"
_CLASS_ALIASES = {"numbers": "digits", "upper": "uppercase", "lower": "lowercase"}

_RAND_BITS = 32
_RAND_RANGE = 1 << _RAND_BITS

# type alias for the random source: takes a bit count, returns a uniform int below 2**bits
RandBitsFn = Callable[[int], int]


@dataclass(frozen=True)
class PasswordRequest:
    length: int = 16
    classes: frozenset[str] = field(default_factory=lambda: frozenset(CLASS_ORDER))
    exclude_ambiguous: bool = False

    @classmethod
    def from_dict(cls, obj: dict[str, Any] | None, default_length: int = 16) -> PasswordRequest:
        obj = obj or {}
        try:
            length = int(obj.get("length", default_length))
        except (TypeError, ValueError):
            length = default_length
        raw_classes = obj.get("classes")
        if raw_classes is None:
            classes = frozenset(CLASS_ORDER)
        else:
            classes = normalize_classes(raw_classes)
        return cls(
            length=length,
            classes=classes,
            exclude_ambiguous=parse_flag(obj.get("exclude_ambiguous", obj.get("excludeAmbiguous"))),
        )


def normalize_classes(raw: Iterable[str]) -> frozenset[str]:
    # unknown class names are ignored rather than rejected
    out = set()
    for name in raw:
        name = _CLASS_ALIASES.get(str(name).lower(), str(name).lower())
        if name in CHARSETS:
            out.add(name)
    return frozenset(out)


def secure_randint(upper: int, randbits: RandBitsFn = secrets.randbits) -> int:
    """
    uniform int in [0, upper). raw 32-bit values at or above the largest multiple of upper that
    fits in 2**32 are thrown away and redrawn before reducing, which removes modulo bias.
    """
    if upper <= 0:
        raise ValueError("upper bound must be positive")
    limit = (_RAND_RANGE // upper) * upper
    while True:
        value = randbits(_RAND_BITS)
        if value < limit:
            return value % upper


def _sanitize(pool: str, exclude_ambiguous: bool) -> str:
    if not exclude_ambiguous:
        return pool
    return "".join(ch for ch in pool if ch not in AMBIGUOUS)


def active_pools(request: PasswordRequest) -> list[str]:
    """the character pools for the selected classes, ambiguous characters removed per pool."""
    pools = []
    for name in CLASS_ORDER:
        if name in request.classes:
            pool = _sanitize(CHARSETS[name], request.exclude_ambiguous)
            if pool:
                pools.append(pool)
    return pools


def is_valid(request: PasswordRequest) -> bool:
    return bool("".join(active_pools(request)))


def shuffle(chars: list[str], randbits: RandBitsFn = secrets.randbits) -> None:
    # Fisher-Yates, in place
    for i in range(len(chars) - 1, 0, -1):
        j = secure_randint(i + 1, randbits)
        chars[i], chars[j] = chars[j], chars[i]


def generate(request: PasswordRequest, randbits: RandBitsFn = secrets.randbits) -> str:
    """generate one password, or "" when the configuration cannot produce one."""
    pools = active_pools(request)
    full_charset = "".join(pools)
    if not full_charset:
        password_logger.info("Password generation skipped: no usable character class selected")
        return ""

    # coverage: one pick per active pool
    chars = [pool[secure_randint(len(pool), randbits)] for pool in pools]

    # never shorter than the mandatory coverage
    target_length = max(request.length, len(chars))
    while len(chars) < target_length:
        chars.append(full_charset[secure_randint(len(full_charset), randbits)])

    shuffle(chars, randbits)
    return "".join(chars)


def pool_size(request: PasswordRequest) -> int:
    return sum(len(pool) for pool in active_pools(request))


def estimate_entropy_bits(request: PasswordRequest) -> int:
    """
    length * log2(pool size), rounded half up. a simplified estimate: it ignores that the coverage
    guarantee slightly lowers the real entropy.
    """
    size = pool_size(request)
    if size == 0 or request.length <= 0:
        return 0
    return math.floor(request.length * math.log2(size) + 0.5)


def generate_password(
    request: PasswordRequest, randbits: RandBitsFn = secrets.randbits
) -> dict[str, Any]:
    password = generate(request, randbits)
    return {
        "password": password,
        "entropy_bits": estimate_entropy_bits(request),
        "valid": bool(password),
    }

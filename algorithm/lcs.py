"""
goal: longest-common-subsequence alignment of two keyed sequences. used twice by the text diff:
      once over lines and once over the tokens of each changed line pair.

the DP table is O(n*m) in time and memory, where n and m are line counts or per-line token counts,
never raw character counts.

backtrack order (walking from the end of both sequences):
1. keys equal -> unchanged (a match is always consumed first)
2. a new item is left and skipping it loses nothing (dp[i][j-1] >= dp[i-1][j]) -> added
3. otherwise -> removed
the walk produces the script back to front, so it is reversed before returning. inside a changed
block this puts removed items before added ones, which is what the line pairing relies on.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, Literal, Protocol, TypeVar

OpKind = Literal["unchanged", "added", "removed"]

UNCHANGED: OpKind = "unchanged"
ADDED: OpKind = "added"
REMOVED: OpKind = "removed"


class Keyed(Protocol):
    @property
    def key(self) -> str: ...


T = TypeVar("T", bound=Keyed)


@dataclass(frozen=True)
class DiffOp(Generic[T]):
    kind: OpKind
    old: T | None = None  # set for unchanged and removed
    new: T | None = None  # set for unchanged and added


def _lcs_table(old_keys: list[str], new_keys: list[str]) -> list[list[int]]:
    n, m = len(old_keys), len(new_keys)
    dp = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(1, n + 1):
        row = dp[i]
        prev = dp[i - 1]
        old_key = old_keys[i - 1]
        for j in range(1, m + 1):
            if old_key == new_keys[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                # max() is slow in a hot loop, compare by hand
                up = prev[j]
                left = row[j - 1]
                row[j] = up if up >= left else left
    return dp


def align(old_seq: Sequence[T], new_seq: Sequence[T]) -> list[DiffOp[T]]:
    """return a complete edit script turning old_seq into new_seq."""
    old_keys = [item.key for item in old_seq]
    new_keys = [item.key for item in new_seq]
    dp = _lcs_table(old_keys, new_keys)

    ops: list[DiffOp[T]] = []
    i, j = len(old_seq), len(new_seq)
    while i > 0 or j > 0:
        if i > 0 and j > 0 and old_keys[i - 1] == new_keys[j - 1]:
            ops.append(DiffOp(UNCHANGED, old=old_seq[i - 1], new=new_seq[j - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or dp[i][j - 1] >= dp[i - 1][j]):
            ops.append(DiffOp(ADDED, new=new_seq[j - 1]))
            j -= 1
        else:
            ops.append(DiffOp(REMOVED, old=old_seq[i - 1]))
            i -= 1

    ops.reverse()
    return ops


def lcs_length(old_seq: Sequence[Keyed], new_seq: Sequence[Keyed]) -> int:
    dp = _lcs_table([item.key for item in old_seq], [item.key for item in new_seq])
    return dp[-1][-1]

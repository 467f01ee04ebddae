"""
goal: hierarchical text diff. aligns two texts line by line with LCS, then re-aligns every paired
      removed/added line token by token so the UI can highlight just the words that changed.

two stages:
- stage A (lines): each line gets a key built with the same normalization as tokens, so with
  ignore_whitespace on, lines that only differ in spacing compare equal
- stage B (tokens): a run of removed lines directly followed by a run of added lines is a changed
  block. lines are paired by position (1st removed with 1st added, and so on). each pair is
  tokenized and aligned again, and the result is attached as spans on both lines. lines left over
  when the runs have different lengths are emitted without spans.

pairing by position is a heuristic: a block of reordered lines can get mis-paired. that is accepted,
swapping in a smarter block alignment would change the output.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from algorithm.lcs import ADDED, REMOVED, UNCHANGED, DiffOp, OpKind, align
from algorithm.tokenizer import NormalizationSettings, Token, diff_key, tokenize

diff_logger = logging.getLogger("tooldeck.diff")

_LINE_SPLIT_RE = re.compile(r"\r?\n")


@dataclass(frozen=True)
class Line:
    render: str
    key: str
    number: int  # 1-based position in its own text


@dataclass(frozen=True)
class Span:
    kind: OpKind
    text: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind, "text": self.text}


@dataclass(frozen=True)
class AnnotatedLine:
    kind: OpKind
    text: str
    spans: tuple[Span, ...] | None = None  # only on word-diffed pairs
    old_number: int | None = None
    new_number: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.kind,
            "text": self.text,
            "old_number": self.old_number,
            "new_number": self.new_number,
        }
        if self.spans is not None:
            out["spans"] = [s.to_dict() for s in self.spans]
        return out


def split_lines(text: str) -> list[str]:
    # "\n" and "\r\n" both end a line, terminators are dropped
    return _LINE_SPLIT_RE.split(text)


def count_lines(text: str) -> int:
    # same count split_lines gives, without building the list
    return text.count("\n") + 1


def _keyed_lines(text: str, settings: NormalizationSettings) -> list[Line]:
    return [
        Line(render=raw, key=diff_key(raw, settings), number=idx + 1)
        for idx, raw in enumerate(split_lines(text))
    ]


def _word_spans(
    old_line: str,
    new_line: str,
    settings: NormalizationSettings,
    max_tokens: int | None = None,
) -> tuple[tuple[Span, ...], tuple[Span, ...]] | None:
    """
    token-level alignment of one line pair, split into the old side and the new side.
    returns None when either side has more than max_tokens tokens.
    """
    old_tokens = tokenize(old_line, settings)
    new_tokens = tokenize(new_line, settings)
    if max_tokens is not None and max(len(old_tokens), len(new_tokens)) > max_tokens:
        diff_logger.debug(
            "skipping word diff of a %d/%d token line pair", len(old_tokens), len(new_tokens)
        )
        return None
    ops: list[DiffOp[Token]] = align(old_tokens, new_tokens)

    old_spans: list[Span] = []
    new_spans: list[Span] = []
    for op in ops:
        if op.kind != ADDED:
            assert op.old is not None
            old_spans.append(Span(op.kind, op.old.render))
        if op.kind != REMOVED:
            assert op.new is not None
            new_spans.append(Span(op.kind, op.new.render))
    return tuple(old_spans), tuple(new_spans)


def compute_diff(
    old_text: str,
    new_text: str,
    settings: NormalizationSettings | None = None,
    max_line_tokens: int | None = None,
) -> list[AnnotatedLine]:
    """
    diff two texts into an ordered list of annotated lines.
    both texts empty gives an empty list, identical texts give only unchanged lines.

    max_line_tokens caps the token DP of one line pair. a pair where either side tokenizes to more
    tokens than that is still reported as removed + added, just without spans.
    """
    if not old_text and not new_text:
        return []
    settings = settings or NormalizationSettings()

    old_lines = _keyed_lines(old_text, settings)
    new_lines = _keyed_lines(new_text, settings)
    line_ops: list[DiffOp[Line]] = align(old_lines, new_lines)

    result: list[AnnotatedLine] = []
    k = 0
    total = len(line_ops)
    while k < total:
        op = line_ops[k]
        if op.kind == UNCHANGED:
            assert op.old is not None and op.new is not None
            result.append(
                AnnotatedLine(
                    UNCHANGED, op.new.render, old_number=op.old.number, new_number=op.new.number
                )
            )
            k += 1
            continue

        # collect one changed block: removed run, then added run
        removals: list[Line] = []
        while k < total and line_ops[k].kind == REMOVED:
            removals.append(line_ops[k].old)  # type: ignore[arg-type]
            k += 1
        additions: list[Line] = []
        while k < total and line_ops[k].kind == ADDED:
            additions.append(line_ops[k].new)  # type: ignore[arg-type]
            k += 1

        for p in range(max(len(removals), len(additions))):
            rem = removals[p] if p < len(removals) else None
            add = additions[p] if p < len(additions) else None

            if rem is not None and add is not None:
                spans = _word_spans(rem.render, add.render, settings, max_line_tokens)
                if spans is None:
                    result.append(AnnotatedLine(REMOVED, rem.render, old_number=rem.number))
                    result.append(AnnotatedLine(ADDED, add.render, new_number=add.number))
                    continue
                old_spans, new_spans = spans
                result.append(
                    AnnotatedLine(REMOVED, rem.render, spans=old_spans, old_number=rem.number)
                )
                result.append(
                    AnnotatedLine(ADDED, add.render, spans=new_spans, new_number=add.number)
                )
            elif rem is not None:
                result.append(AnnotatedLine(REMOVED, rem.render, old_number=rem.number))
            elif add is not None:
                result.append(AnnotatedLine(ADDED, add.render, new_number=add.number))

    diff_logger.debug(
        "diff computed: %d old lines, %d new lines, %d output lines",
        len(old_lines),
        len(new_lines),
        len(result),
    )
    return result


def diff_stats(lines: list[AnnotatedLine]) -> dict[str, int]:
    """count output lines per kind, for summaries."""
    stats = {UNCHANGED: 0, ADDED: 0, REMOVED: 0}
    for line in lines:
        stats[line.kind] += 1
    return stats


def is_identical(lines: list[AnnotatedLine]) -> bool:
    return all(line.kind == UNCHANGED for line in lines)

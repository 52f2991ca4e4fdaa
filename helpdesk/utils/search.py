"""关键词与模糊匹配工具。"""

from __future__ import annotations

import re
from difflib import SequenceMatcher
from typing import Callable, Iterable, Sequence, TypeVar

T = TypeVar("T")

FUZZY_THRESHOLD = 0.8

_WORD_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> list[str]:
    return [w.lower() for w in _WORD_RE.findall(text or "")]


def keyword_score(keyword: str, fields: Sequence[str]) -> float:
    """计算关键词与若干文本字段的相关度。

    整串命中记 1 分；否则按词取最佳模糊相似度，低于阈值的词不计分。
    返回 0 表示不相关。
    """

    needle = (keyword or "").strip().lower()
    if not needle:
        return 0.0
    haystack = " ".join(f for f in fields if f).lower()
    if needle in haystack:
        return 1.0

    words = tokenize(haystack)
    terms = tokenize(needle)
    if not words or not terms:
        return 0.0
    total = 0.0
    for term in terms:
        best = max(SequenceMatcher(None, term, w).ratio() for w in words)
        if best >= FUZZY_THRESHOLD:
            total += best
    return total / len(terms) * 0.9


def rank_by_keyword(
    items: Iterable[T], keyword: str, fields: Callable[[T], Sequence[str]]
) -> list[T]:
    """过滤出与关键词相关的条目，按相关度降序（同分保持原顺序）。"""

    scored = []
    for index, item in enumerate(items):
        score = keyword_score(keyword, fields(item))
        if score > 0:
            scored.append((-score, index, item))
    scored.sort(key=lambda entry: (entry[0], entry[1]))
    return [item for _, _, item in scored]

"""审阅者信任评分。

审阅者可出现在多位用户的信任列表中，列表内名次 1 最受信任。
评分把这些名次聚合为 1-5 的整数；出现次数不足时返回 0（数据不足）。

单个列表的贡献 ``r = (L - p + 1) / L``：名次越靠前越接近 1，长列表中
的靠后名次衰减更平缓。每个列表再按长度取置信权重 ``w = L / (L + k)``，
长列表的名次更有说服力。聚合为加权平均，并加入 ``m`` 份先验 ``prior``
做贝叶斯平滑，避免少量列表导致极端分数。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from helpdesk.config import get_settings

UNRATED = 0
MIN_SCORE = 1
MAX_SCORE = 5


@dataclass(frozen=True)
class Placement:
    """审阅者在某个信任列表中的一次出现。"""

    position: int
    list_size: int

    @property
    def is_valid(self) -> bool:
        return 1 <= self.position <= self.list_size

    @property
    def contribution(self) -> float:
        return (self.list_size - self.position + 1) / self.list_size

    def size_weight(self, size_bias: float) -> float:
        """列表长度的置信权重 ``L / (L + k)``；``k = 0`` 时各列表等权。"""

        return self.list_size / (self.list_size + size_bias)


@dataclass(frozen=True)
class ScoringPolicy:
    min_lists: int = 3
    prior: float = 0.5
    smoothing: float = 1.0
    size_bias: float = 0.5

    @classmethod
    def from_settings(cls) -> "ScoringPolicy":
        settings = get_settings()
        return cls(
            min_lists=settings.rating_min_lists,
            prior=settings.rating_prior,
            smoothing=settings.rating_smoothing,
            size_bias=settings.rating_size_bias,
        )

    def smoothed(self, placements: Iterable[Placement]) -> float:
        valid = [p for p in placements if p.is_valid]
        weights = [p.size_weight(self.size_bias) for p in valid]
        total = sum(w * p.contribution for w, p in zip(weights, valid))
        denominator = sum(weights) + self.smoothing
        if denominator <= 0:
            return self.prior
        return (total + self.smoothing * self.prior) / denominator

    def score(self, placements: Iterable[Placement]) -> int:
        placements = list(placements)
        if len(placements) < self.min_lists:
            return UNRATED
        value = self.smoothed(placements)
        # 1 + 4R 四舍五入（half-up）
        rounded = math.floor(MIN_SCORE + (MAX_SCORE - MIN_SCORE) * value + 0.5)
        return max(MIN_SCORE, min(MAX_SCORE, int(rounded)))


def calculate_rating(placements: Iterable[Placement], policy: ScoringPolicy | None = None) -> int:
    return (policy or ScoringPolicy.from_settings()).score(placements)

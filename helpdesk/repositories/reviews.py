"""信任列表仓储（复合主键 reviewer_id + user_id）。"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select

from helpdesk.core import validators
from helpdesk.models import UNRANKED, Review, User
from helpdesk.repositories.base import CompositeKeyRepository
from helpdesk.services.rating import Placement, ScoringPolicy

logger = logging.getLogger(__name__)


class Reviews(CompositeKeyRepository[Review]):
    model = Review
    key_columns = ("reviewer_id", "user_id")

    def validate(self, entity: Review, creating: bool) -> None:
        reviewer = self.db.get(User, entity.reviewer_id) if entity and entity.reviewer_id else None
        owner = self.db.get(User, entity.user_id) if entity and entity.user_id else None
        validators.validate_review(entity, reviewer, owner)

    def create(self, entity: Review) -> Review:
        if entity.rating is None:
            entity.rating = UNRANKED
        return super().create(entity)

    def get_reviewers_by_user_id(self, user_id: int) -> list[Review]:
        """``user_id`` 的信任列表，按名次升序（未排名者在最后）。"""

        return self._scalars(
            select(Review)
            .where(Review.user_id == user_id)
            .order_by(Review.rating, Review.reviewer_id)
        )

    def get_trusted_list(self, user_id: int) -> list[User]:
        return [review.reviewer for review in self.get_reviewers_by_user_id(user_id)]

    def set_rating(self, reviewer_id: int, user_id: int, rating: int = UNRANKED) -> Review:
        """设置名次；条目不存在时创建。"""

        review = self.get_by_composite_key(reviewer_id, user_id)
        if review is None:
            return self.create(Review(reviewer_id=reviewer_id, user_id=user_id, rating=rating))
        review.rating = rating
        self.validate(review, creating=False)
        self._flush("set rating")
        return review

    def placements_of(self, reviewer_id: int) -> list[Placement]:
        list_size = (
            select(Review.user_id, func.count().label("size"))
            .group_by(Review.user_id)
            .subquery()
        )
        rows = self._execute(
            select(Review.rating, list_size.c.size)
            .join(list_size, list_size.c.user_id == Review.user_id)
            .where(Review.reviewer_id == reviewer_id)
        ).all()
        return [Placement(position=row.rating, list_size=row.size) for row in rows]

    def calculate_aggregated_rating(
        self, reviewer_id: int, policy: Optional[ScoringPolicy] = None
    ) -> int:
        """审阅者的聚合信任评分：0 表示数据不足，否则 1-5。"""

        policy = policy or ScoringPolicy.from_settings()
        score = policy.score(self.placements_of(reviewer_id))
        logger.debug("Aggregated rating for reviewer %s: %s", reviewer_id, score)
        return score

"""信任列表与审阅者评分 API。"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from helpdesk.core.session import SessionContext
from helpdesk.dependencies import get_current_session, get_service
from helpdesk.models import UNRANKED
from helpdesk.services.helpdesk import HelpDeskService

router = APIRouter()


# === Schemas ===

class RankUpdate(BaseModel):
    rank: Optional[int] = None


class TrustedEntry(BaseModel):
    reviewer_id: int
    username: str
    rank: Optional[int]

    @classmethod
    def from_review(cls, review) -> "TrustedEntry":
        return cls(
            reviewer_id=review.reviewer_id,
            username=review.reviewer.username,
            rank=review.rating if review.is_ranked else None,
        )


class RatingResponse(BaseModel):
    reviewer_id: int
    rating: int


# === API 端点 ===

@router.get("/trusted", response_model=List[TrustedEntry])
def trusted_list(
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    """当前用户的信任列表，按名次排列。"""
    return [TrustedEntry.from_review(r) for r in service.reviews.get_reviewers_by_user_id(ctx.user_id)]


@router.put("/trusted/{reviewer_id}", response_model=TrustedEntry)
def set_trusted_rank(
    reviewer_id: int,
    data: RankUpdate,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    rank = UNRANKED if data.rank is None else data.rank
    return TrustedEntry.from_review(service.set_trusted_rank(ctx, reviewer_id, rank))


@router.delete("/trusted/{reviewer_id}")
def remove_trusted_reviewer(
    reviewer_id: int,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    service.remove_trusted_reviewer(ctx, reviewer_id)
    return {"status": "ok"}


@router.get("/reviewers/{reviewer_id}/rating", response_model=RatingResponse)
def reviewer_rating(reviewer_id: int, service: HelpDeskService = Depends(get_service)):
    rating = service.get_reviewer_rating(reviewer_id)
    if rating is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reviewer not found")
    return RatingResponse(reviewer_id=reviewer_id, rating=rating)

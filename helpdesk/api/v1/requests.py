"""请求 API - 审阅者申请与管理员请求。"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from helpdesk.core.session import SessionContext
from helpdesk.dependencies import get_current_session, get_service
from helpdesk.models import AdminAction, RequestState
from helpdesk.services.helpdesk import HelpDeskService

router = APIRouter()


# === Schemas ===

class ReviewerRequestCreate(BaseModel):
    instructor_id: Optional[int] = None


class ReviewerRequestResponse(BaseModel):
    id: int
    requester_id: int
    instructor_id: Optional[int]
    status: Optional[bool]

    class Config:
        from_attributes = True


class Decision(BaseModel):
    approve: bool


class AdminRequestCreate(BaseModel):
    target_id: int
    type: AdminAction
    reason: str
    context: Optional[int] = None


class AdminRequestResponse(BaseModel):
    id: int
    requester_id: int
    target_id: int
    type: AdminAction
    state: RequestState
    reason: str
    context: Optional[int]
    version: int

    class Config:
        from_attributes = True


class AdminDecisionResponse(BaseModel):
    request_id: int
    action: AdminAction
    state: RequestState
    target_id: int
    one_time_password: Optional[str] = None


def _refused(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found or refused")


# === 审阅者申请 ===

@router.post("/reviewer", response_model=ReviewerRequestResponse)
def request_reviewer_status(
    data: ReviewerRequestCreate,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    return service.request_reviewer_status(ctx, data.instructor_id)


@router.get("/reviewer/pending", response_model=List[ReviewerRequestResponse])
def pending_reviewer_requests(
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    """当前教师名下待审批的申请。"""
    return service.reviewer_requests.pending_for_instructor(ctx.user_id)


@router.post("/reviewer/{request_id}/decision", response_model=ReviewerRequestResponse)
def decide_reviewer_request(
    request_id: int,
    data: Decision,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    decided = service.decide_reviewer_request(ctx, request_id, data.approve)
    if decided is None:
        raise _refused("Reviewer request")
    return decided


# === 管理员请求 ===

@router.post("/admin", response_model=AdminRequestResponse)
def create_admin_request(
    data: AdminRequestCreate,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    return service.create_admin_request(ctx, data.target_id, data.type, data.reason, data.context)


@router.get("/admin", response_model=List[AdminRequestResponse])
def filter_admin_requests(
    action: AdminAction,
    state: RequestState = RequestState.PENDING,
    requester_id: Optional[int] = None,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    return service.list_admin_requests(ctx, action, state, requester_id)


@router.post("/admin/{request_id}/decision", response_model=AdminDecisionResponse)
def decide_admin_request(
    request_id: int,
    data: Decision,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    decision = service.decide_admin_request(ctx, request_id, data.approve)
    if decision is None:
        raise _refused("Admin request")
    return AdminDecisionResponse(
        request_id=decision.request_id,
        action=decision.action,
        state=decision.state,
        target_id=decision.target_id,
        one_time_password=decision.one_time_password,
    )

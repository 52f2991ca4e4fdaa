"""请求工作流：管理员请求与审阅者申请的状态机。

两个工作流都只管理请求本身的状态，不产生账户副作用；
授予角色、删除用户等效果由应用服务在同一事务内完成。
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from helpdesk.core.exceptions import ValidationError
from helpdesk.models import AdminAction, AdminRequest, RequestState, ReviewerRequest
from helpdesk.repositories import AdminRequests, ReviewerRequests

logger = logging.getLogger(__name__)


class AdminRequestWorkflow:
    """``Pending -> {Accepted, Denied}``，终态不可再变。

    发起人权限只在创建时校验；状态迁移本身不检查执行者权限，
    由调用方（应用服务）负责。
    """

    TERMINAL_STATES = (RequestState.ACCEPTED, RequestState.DENIED)

    def __init__(self, db: Session) -> None:
        self.requests = AdminRequests(db)

    def create(self, request: AdminRequest) -> AdminRequest:
        created = self.requests.create(request)
        logger.info(
            "Admin request %s created: %s on user %s by %s",
            created.id,
            created.type.value,
            created.target_id,
            created.requester_id,
        )
        return created

    def get(self, request_id: int) -> Optional[AdminRequest]:
        return self.requests.get_by_id(request_id)

    def set_state(self, request_id: int, new_state: RequestState) -> Optional[AdminRequest]:
        if new_state not in self.TERMINAL_STATES:
            raise ValidationError(f"Cannot move an admin request to {new_state.value}.")
        return self.requests.set_state(request_id, new_state)

    def accept(self, request_id: int) -> Optional[AdminRequest]:
        return self.set_state(request_id, RequestState.ACCEPTED)

    def deny(self, request_id: int) -> Optional[AdminRequest]:
        return self.set_state(request_id, RequestState.DENIED)

    def filter(
        self,
        action: AdminAction,
        state: RequestState,
        requester_id: Optional[int] = None,
    ) -> list[AdminRequest]:
        return self.requests.filter_fetch(action, state, requester_id)


class ReviewerRequestWorkflow:
    """``None -> {True, False}``。

    ``accept`` / ``reject`` 返回 ``None`` 表示被静默拒绝（请求不存在、
    未指派教师或教师已不再持有 INSTRUCTOR）；返回请求对象时，
    调用方需自行为申请人授予 REVIEWER 角色。
    """

    def __init__(self, db: Session) -> None:
        self.requests = ReviewerRequests(db)

    def create(self, request: ReviewerRequest) -> ReviewerRequest:
        created = self.requests.create(request)
        logger.info(
            "Reviewer request %s created by user %s for instructor %s",
            created.id,
            created.requester_id,
            created.instructor_id,
        )
        return created

    def get(self, request_id: int) -> Optional[ReviewerRequest]:
        return self.requests.get_by_id(request_id)

    def accept(self, request_id: int) -> Optional[ReviewerRequest]:
        return self.requests.accept_request(request_id)

    def reject(self, request_id: int) -> Optional[ReviewerRequest]:
        return self.requests.reject_request(request_id)

    def pending_for_instructor(self, instructor_id: int) -> list[ReviewerRequest]:
        return [
            r for r in self.requests.get_requests_by_instructor(instructor_id) if r.status is None
        ]

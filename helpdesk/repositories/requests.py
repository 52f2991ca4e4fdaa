"""管理员请求与审阅者申请仓储。

状态迁移一律使用条件更新（``WHERE state = Pending`` /
``WHERE status IS NULL``），并发写者之间至多一个成功，
失败者收到 ``ConflictError``。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update

from helpdesk.core import validators
from helpdesk.core.exceptions import ConflictError, ValidationError
from helpdesk.core.roles import Role
from helpdesk.models import AdminAction, AdminRequest, RequestState, ReviewerRequest, User
from helpdesk.repositories.base import Repository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdminRequests(Repository[AdminRequest]):
    model = AdminRequest

    def validate(self, entity: AdminRequest, creating: bool) -> None:
        requester = self.db.get(User, entity.requester_id) if entity and entity.requester_id else None
        target = self.db.get(User, entity.target_id) if entity and entity.target_id else None
        validators.validate_admin_request(entity, requester, target)
        if creating and entity.state != RequestState.PENDING:
            raise ValidationError("A new admin request must be pending.")

    def create(self, entity: AdminRequest) -> AdminRequest:
        if entity.state is None:
            entity.state = RequestState.PENDING
        return super().create(entity)

    def filter_fetch(
        self,
        action: AdminAction,
        state: RequestState,
        requester_id: Optional[int] = None,
    ) -> list[AdminRequest]:
        """按 (类型, 状态[, 发起人]) 精确匹配。"""

        statement = select(AdminRequest).where(
            AdminRequest.type == action, AdminRequest.state == state
        )
        if requester_id is not None:
            statement = statement.where(AdminRequest.requester_id == requester_id)
        return self._scalars(statement.order_by(AdminRequest.id))

    def set_state(
        self,
        request_id: int,
        new_state: RequestState,
        expected_state: RequestState = RequestState.PENDING,
    ) -> Optional[AdminRequest]:
        """条件迁移请求状态。

        请求不存在返回 ``None``；存在但状态已不是 ``expected_state``
        （已被其他写者决定）时抛出 ``ConflictError``。
        """

        result = self._execute(
            update(AdminRequest)
            .where(AdminRequest.id == request_id, AdminRequest.state == expected_state)
            .values(state=new_state, version=AdminRequest.version + 1, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            if not self._exists(request_id):
                return None
            raise ConflictError("AdminRequest", request_id, "request is no longer pending")

        request = self.get_by_id(request_id)
        self.db.refresh(request)
        logger.info("Admin request %s moved to %s", request_id, new_state.value)
        return request


class ReviewerRequests(Repository[ReviewerRequest]):
    model = ReviewerRequest

    def validate(self, entity: ReviewerRequest, creating: bool) -> None:
        requester = self.db.get(User, entity.requester_id) if entity and entity.requester_id else None
        instructor = self.db.get(User, entity.instructor_id) if entity and entity.instructor_id else None
        if entity is not None and entity.instructor_id and instructor is None:
            raise ValidationError("The assigned instructor does not exist.")
        validators.validate_reviewer_request(entity, requester, instructor, creating=creating)

    def get_requests_by_user(self, user_id: int) -> list[ReviewerRequest]:
        return self._scalars(
            select(ReviewerRequest)
            .where(ReviewerRequest.requester_id == user_id)
            .order_by(ReviewerRequest.id)
        )

    def get_requests_by_instructor(self, instructor_id: int) -> list[ReviewerRequest]:
        return self._scalars(
            select(ReviewerRequest)
            .where(ReviewerRequest.instructor_id == instructor_id)
            .order_by(ReviewerRequest.id)
        )

    def get_pending_requests(self) -> list[ReviewerRequest]:
        return self._scalars(
            select(ReviewerRequest)
            .where(ReviewerRequest.status.is_(None))
            .order_by(ReviewerRequest.id)
        )

    def accept_request(self, request_id: int) -> Optional[ReviewerRequest]:
        return self._decide(request_id, True)

    def reject_request(self, request_id: int) -> Optional[ReviewerRequest]:
        return self._decide(request_id, False)

    def _decide(self, request_id: int, approved: bool) -> Optional[ReviewerRequest]:
        """请求缺失、未指派教师或教师已失去 INSTRUCTOR 角色时静默返回 ``None``。"""

        request = self.get_by_id(request_id)
        if request is None or request.instructor_id is None:
            return None
        instructor = self.db.get(User, request.instructor_id)
        if instructor is None or not instructor.has_role(Role.INSTRUCTOR):
            return None

        result = self._execute(
            update(ReviewerRequest)
            .where(ReviewerRequest.id == request_id, ReviewerRequest.status.is_(None))
            .values(status=approved, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("ReviewerRequest", request_id, "request was already decided")

        self.db.refresh(request)
        logger.info(
            "Reviewer request %s %s by instructor %s",
            request_id,
            "approved" if approved else "rejected",
            instructor.id,
        )
        return request

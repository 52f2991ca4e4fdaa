"""Help-desk 应用服务。

对外暴露的每个操作都在一个事务内完成（``session_scope``），
瞬时存储故障按配置整体重试。执行者身份通过显式的
``SessionContext`` 传入；涉及授权的判断以数据库中的当前角色为准。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from sqlalchemy.orm import Session
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from helpdesk.config import Settings, get_settings
from helpdesk.core import validators
from helpdesk.core.exceptions import AuthorizationError, ValidationError
from helpdesk.core.roles import Role, RoleSet
from helpdesk.core.security import generate_code
from helpdesk.core.session import SessionContext
from helpdesk.db import session_scope
from helpdesk.models import (
    UNRANKED,
    AdminAction,
    AdminRequest,
    Answer,
    Invite,
    Message,
    OneTimePassword,
    PrivateMessage,
    Question,
    RequestState,
    Review,
    ReviewerRequest,
    User,
)
from helpdesk.repositories import (
    Answers,
    Invites,
    OneTimePasswords,
    PrivateMessages,
    Questions,
    Reviews,
    TransientStorageError,
    Users,
    storage_errors,
)
from helpdesk.services.workflows import AdminRequestWorkflow, ReviewerRequestWorkflow

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 首位管理员同时承担教师职责，便于初始化后直接审批
FIRST_ADMIN_ROLES = RoleSet.of(Role.USER, Role.ADMIN, Role.INSTRUCTOR)


@dataclass(frozen=True)
class AdminDecision:
    """管理员请求的裁决结果。

    ``one_time_password`` 仅在通过 RequestPassword 请求时返回一次明文。
    DeleteUser 会级联删除以目标用户为对象的请求行，因此这里只保留快照。
    """

    request_id: int
    action: AdminAction
    state: RequestState
    target_id: int
    one_time_password: Optional[str] = None


class HelpDeskService:
    """应用层入口：组合仓储与工作流，并负责事务与授权。"""

    def __init__(self, db: Session, settings: Optional[Settings] = None) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.users = Users(db)
        self.invites = Invites(db)
        self.otps = OneTimePasswords(db)
        self.questions = Questions(db)
        self.answers = Answers(db)
        self.private_messages = PrivateMessages(db)
        self.reviews = Reviews(db)
        self.admin_requests = AdminRequestWorkflow(db)
        self.reviewer_requests = ReviewerRequestWorkflow(db)

    # === 事务与身份 ===

    def _atomic(self, work: Callable[[], T]) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(max(1, self.settings.retry_attempts)),
            wait=wait_fixed(self.settings.retry_wait_seconds),
            retry=retry_if_exception_type(TransientStorageError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                with storage_errors("transaction"):
                    with session_scope(self.db):
                        result = work()
        return result

    def _actor(self, ctx: SessionContext) -> User:
        user = self.users.get_by_id(ctx.user_id)
        if user is None:
            raise AuthorizationError("The session user no longer exists.")
        return user

    def _require_any(self, user: User, *roles: Role) -> None:
        if not user.role_set.has_any(roles):
            names = ", ".join(r.name for r in roles)
            raise AuthorizationError(f"This operation requires one of: {names}.")

    def _ensure_not_last_admin(self, user: User) -> None:
        if user.has_role(Role.ADMIN) and self.users.count_admins() <= 1:
            raise ValidationError("The last administrator cannot be removed.")

    # === 账户 ===

    def login(self, username: str, password: str) -> Optional[SessionContext]:
        """凭据正确时返回会话上下文，否则返回 ``None``。"""

        def work() -> Optional[SessionContext]:
            user = self.users.get_by_username(username)
            if user is None or not self.users.validate_login(username, password):
                logger.info("Failed login for %s", username)
                return None
            return SessionContext.for_user(user)

        return self._atomic(work)

    def _check_credentials(self, username, password, first_name, last_name, email) -> None:
        validators.validate_username(username)
        validators.validate_password(password)
        validators.validate_name(first_name)
        validators.validate_name(last_name)
        validators.validate_email(email)

    def setup_first_admin(
        self, username: str, password: str, first_name: str, last_name: str, email: str
    ) -> User:
        """系统为空时创建首位管理员；已有用户时拒绝。"""

        self._check_credentials(username, password, first_name, last_name, email)

        def work() -> User:
            if self.users.get_all():
                raise ValidationError("The system has already been set up.")
            user = User(
                username=username,
                first_name=first_name,
                last_name=last_name,
                email=email,
                roles=int(FIRST_ADMIN_ROLES),
            )
            self.users.create(user, password=password)
            logger.info("First administrator %s created", user.id)
            return user

        return self._atomic(work)

    def register(
        self,
        invite_code: str,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        email: str,
    ) -> User:
        """凭邀请码注册，授予邀请码上的角色（始终包含 USER）。"""

        self._check_credentials(username, password, first_name, last_name, email)

        def work() -> User:
            if self.users.does_user_exist(username):
                raise ValidationError("Username already exists.")
            invite = self.invites.find_invite(invite_code)
            if invite is None:
                raise ValidationError("Invalid or expired invite code.")
            user = User(
                username=username,
                first_name=first_name,
                last_name=last_name,
                email=email,
                roles=int(RoleSet(invite.roles).with_role(Role.USER)),
            )
            self.users.create(user, password=password)
            logger.info("User %s registered with roles %s", user.id, user.role_set)
            return user

        return self._atomic(work)

    def create_invite(self, ctx: SessionContext, roles) -> Invite:
        """管理员可签发任意角色；教师只能签发学生与审阅者。"""

        granted = RoleSet.coerce(roles)

        def work() -> Invite:
            actor = self._actor(ctx)
            self._require_any(actor, Role.ADMIN, Role.INSTRUCTOR)
            if not actor.has_role(Role.ADMIN):
                allowed = RoleSet.of(Role.USER, Role.STUDENT, Role.REVIEWER)
                if int(granted) & ~int(allowed):
                    raise AuthorizationError("Instructors may only invite students and reviewers.")
            invite = self.invites.create(Invite(user_id=actor.id, roles=int(granted)))
            logger.info("Invite %s created by %s for roles %s", invite.id, actor.id, granted)
            return invite

        return self._atomic(work)

    def reset_password_with_otp(self, username: str, otp: str, new_password: str) -> bool:
        """用一次性密码重置密码；一次性密码错误或已用时返回 False。"""

        validators.validate_password(new_password)

        def work() -> bool:
            user = self.users.get_by_username(username)
            if user is None or not self.otps.check(user.id, otp):
                return False
            self.users.update_password(user.id, new_password)
            logger.info("Password reset via one-time password for user %s", user.id)
            return True

        return self._atomic(work)

    def revoke_role(self, ctx: SessionContext, user_id: int, role: Role) -> Optional[User]:
        def work() -> Optional[User]:
            actor = self._actor(ctx)
            self._require_any(actor, Role.ADMIN)
            user = self.users.get_by_id(user_id)
            if user is None:
                return None
            if role == Role.ADMIN:
                self._ensure_not_last_admin(user)
            user.roles = int(user.role_set.without_role(role))
            self.users.update(user)
            logger.info("Role %s revoked from user %s by %s", role.name, user.id, actor.id)
            return user

        return self._atomic(work)

    # === 问答 ===

    def create_question(self, ctx: SessionContext, title: str, content: str) -> Question:
        def work() -> Question:
            actor = self._actor(ctx)
            question = Question(title=title, message=Message(user_id=actor.id, content=content))
            return self.questions.create(question)

        return self._atomic(work)

    def create_answer(
        self,
        ctx: SessionContext,
        content: str,
        question_id: Optional[int] = None,
        parent_answer_id: Optional[int] = None,
    ) -> Answer:
        def work() -> Answer:
            actor = self._actor(ctx)
            answer = Answer(
                message=Message(user_id=actor.id, content=content),
                question_id=question_id,
                parent_answer_id=parent_answer_id,
                is_pinned=False,
            )
            return self.answers.create(answer)

        return self._atomic(work)

    def create_private_message(
        self,
        ctx: SessionContext,
        content: str,
        question_id: Optional[int] = None,
        parent_private_message_id: Optional[int] = None,
    ) -> PrivateMessage:
        def work() -> PrivateMessage:
            actor = self._actor(ctx)
            pm = PrivateMessage(
                message=Message(user_id=actor.id, content=content),
                question_id=question_id,
                parent_private_message_id=parent_private_message_id,
            )
            return self.private_messages.create(pm)

        return self._atomic(work)

    def toggle_solution(self, ctx: SessionContext, answer_id: int) -> Optional[Answer]:
        """提问者（或管理员/教师）切换采纳解。"""

        def work() -> Optional[Answer]:
            actor = self._actor(ctx)
            answer = self.answers.get_by_id(answer_id)
            if answer is None:
                return None
            if answer.question_id is None:
                raise ValidationError("Only answers to a question can be pinned.")
            question = self.questions.get_by_id(answer.question_id)
            if question.user_id != actor.id:
                self._require_any(actor, Role.ADMIN, Role.INSTRUCTOR)
            return self.answers.toggle_pin(answer_id)

        return self._atomic(work)

    # === 审阅者申请 ===

    def request_reviewer_status(
        self, ctx: SessionContext, instructor_id: Optional[int] = None
    ) -> ReviewerRequest:
        def work() -> ReviewerRequest:
            actor = self._actor(ctx)
            if actor.has_role(Role.REVIEWER):
                raise ValidationError("You are already a reviewer.")
            pending = [
                r for r in self.reviewer_requests.requests.get_requests_by_user(actor.id)
                if r.status is None
            ]
            if pending:
                raise ValidationError("You already have a pending reviewer request.")
            request = ReviewerRequest(requester_id=actor.id, instructor_id=instructor_id)
            return self.reviewer_requests.create(request)

        return self._atomic(work)

    def decide_reviewer_request(
        self, ctx: SessionContext, request_id: int, approve: bool
    ) -> Optional[ReviewerRequest]:
        """指派的教师（或管理员）审批申请；通过时授予 REVIEWER。

        工作流静默拒绝时返回 ``None``。
        """

        def work() -> Optional[ReviewerRequest]:
            actor = self._actor(ctx)
            request = self.reviewer_requests.get(request_id)
            if request is None:
                return None
            if request.instructor_id != actor.id:
                self._require_any(actor, Role.ADMIN)

            if approve:
                decided = self.reviewer_requests.accept(request_id)
            else:
                decided = self.reviewer_requests.reject(request_id)
            if decided is None or not decided.status:
                return decided

            requester = self.users.get_by_id(decided.requester_id)
            if requester is not None:
                requester.roles = int(requester.role_set.with_role(Role.REVIEWER))
                self.users.update(requester)
                logger.info("Granted REVIEWER to user %s", requester.id)
            return decided

        return self._atomic(work)

    # === 管理员请求 ===

    def create_admin_request(
        self,
        ctx: SessionContext,
        target_id: int,
        action: AdminAction,
        reason: str,
        context: Optional[int] = None,
    ) -> AdminRequest:
        def work() -> AdminRequest:
            actor = self._actor(ctx)
            request = AdminRequest(
                requester_id=actor.id,
                target_id=target_id,
                type=AdminAction(action),
                state=RequestState.PENDING,
                reason=reason,
                context=context,
            )
            return self.admin_requests.create(request)

        return self._atomic(work)

    def list_admin_requests(
        self,
        ctx: SessionContext,
        action: AdminAction,
        state: RequestState = RequestState.PENDING,
        requester_id: Optional[int] = None,
    ) -> list[AdminRequest]:
        """按类型与状态（可选发起人）筛选请求；仅管理员与教师可见。"""

        def work() -> list[AdminRequest]:
            actor = self._actor(ctx)
            self._require_any(actor, Role.ADMIN, Role.INSTRUCTOR)
            return self.admin_requests.filter(AdminAction(action), RequestState(state), requester_id)

        return self._atomic(work)

    def decide_admin_request(
        self, ctx: SessionContext, request_id: int, accept: bool
    ) -> Optional[AdminDecision]:
        """管理员裁决请求；通过时在同一事务内执行请求的效果。"""

        def work() -> Optional[AdminDecision]:
            actor = self._actor(ctx)
            self._require_any(actor, Role.ADMIN)
            new_state = RequestState.ACCEPTED if accept else RequestState.DENIED
            request = self.admin_requests.set_state(request_id, new_state)
            if request is None:
                return None

            decision = AdminDecision(
                request_id=request.id,
                action=request.type,
                state=request.state,
                target_id=request.target_id,
            )
            if not accept:
                return decision
            otp = self._apply_admin_action(actor, request)
            return AdminDecision(
                request_id=decision.request_id,
                action=decision.action,
                state=decision.state,
                target_id=decision.target_id,
                one_time_password=otp,
            )

        return self._atomic(work)

    def _apply_admin_action(self, actor: User, request: AdminRequest) -> Optional[str]:
        target = self.users.get_by_id(request.target_id)
        if target is None:
            raise ValidationError("The target user no longer exists.")

        if request.type == AdminAction.DELETE_USER:
            self._ensure_not_last_admin(target)
            self.users.delete(target.id)
            logger.info("User %s deleted by admin request %s", request.target_id, request.id)
            return None

        if request.type == AdminAction.UPDATE_ROLE:
            target.roles = int(target.role_set.with_role(Role(request.context)))
            self.users.update(target)
            logger.info(
                "Granted %s to user %s by admin request %s",
                Role(request.context).name,
                target.id,
                request.id,
            )
            return None

        plain = generate_code(self.settings.otp_length, high_security=True)
        self.otps.create(OneTimePassword(creator_id=actor.id, target_id=target.id), plain=plain)
        logger.info("One-time password issued for user %s by admin request %s", target.id, request.id)
        return plain

    # === 信任列表与评分 ===

    def set_trusted_rank(
        self, ctx: SessionContext, reviewer_id: int, rank: int = UNRANKED
    ) -> Review:
        """把审阅者加入当前用户的信任列表，或调整其名次。"""

        def work() -> Review:
            actor = self._actor(ctx)
            return self.reviews.set_rating(reviewer_id, actor.id, rank)

        return self._atomic(work)

    def remove_trusted_reviewer(self, ctx: SessionContext, reviewer_id: int) -> None:
        def work() -> None:
            actor = self._actor(ctx)
            self.reviews.delete_by_composite_key(reviewer_id, actor.id)

        self._atomic(work)

    def get_reviewer_rating(self, reviewer_id: int) -> Optional[int]:
        """审阅者的 0-5 信任评分；用户不存在返回 ``None``。"""

        def work() -> Optional[int]:
            if self.users.get_by_id(reviewer_id) is None:
                return None
            return self.reviews.calculate_aggregated_rating(reviewer_id)

        return self._atomic(work)

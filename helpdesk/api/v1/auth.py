"""账户 API - 初始化、注册、登录、邀请码与密码重置。"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, status
from pydantic import BaseModel

from helpdesk.core.roles import Role
from helpdesk.core.security import create_token
from helpdesk.core.session import SessionContext
from helpdesk.dependencies import get_current_session, get_service
from helpdesk.services.helpdesk import HelpDeskService

router = APIRouter()


# === Schemas ===

class Token(BaseModel):
    access_token: str
    token_type: str


class Credentials(BaseModel):
    username: str
    password: str
    first_name: str
    last_name: str
    email: str


class RegisterRequest(Credentials):
    invite_code: str


class UserResponse(BaseModel):
    id: int
    username: str
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]
    roles: int
    role_names: List[str]

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            roles=user.roles,
            role_names=user.role_set.display_names(),
        )


class InviteCreate(BaseModel):
    roles: List[Role]


class InviteResponse(BaseModel):
    code: str
    roles: int
    created_at: int


class PasswordReset(BaseModel):
    username: str
    one_time_password: str
    new_password: str


# === API 端点 ===

@router.post("/setup", response_model=UserResponse)
def setup(data: Credentials, service: HelpDeskService = Depends(get_service)):
    """系统为空时创建首位管理员。"""
    user = service.setup_first_admin(
        data.username, data.password, data.first_name, data.last_name, data.email
    )
    return UserResponse.from_user(user)


@router.post("/register", response_model=UserResponse)
def register(data: RegisterRequest, service: HelpDeskService = Depends(get_service)):
    user = service.register(
        data.invite_code,
        data.username,
        data.password,
        data.first_name,
        data.last_name,
        data.email,
    )
    return UserResponse.from_user(user)


@router.post("/login", response_model=Token)
def login(
    username: str = Form(...),
    password: str = Form(...),
    service: HelpDeskService = Depends(get_service),
):
    """用户登录，返回Token。"""
    ctx = service.login(username, password)
    if ctx is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )
    return {"access_token": create_token(ctx.user_id, int(ctx.roles)), "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def me(
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    user = service.users.get_by_id(ctx.user_id)
    return UserResponse.from_user(user)


@router.post("/invites", response_model=InviteResponse)
def create_invite(
    data: InviteCreate,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    invite = service.create_invite(ctx, data.roles)
    return InviteResponse(code=invite.code, roles=invite.roles, created_at=invite.created_at)


@router.post("/password/reset")
def reset_password(data: PasswordReset, service: HelpDeskService = Depends(get_service)):
    if not service.reset_password_with_otp(data.username, data.one_time_password, data.new_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or already used one-time password",
        )
    return {"status": "ok"}

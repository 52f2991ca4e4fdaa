"""FastAPI 依赖注入工具。"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from helpdesk.core.roles import RoleSet
from helpdesk.core.security import decode_token
from helpdesk.core.session import SessionContext
from helpdesk.db import get_db
from helpdesk.models import User
from helpdesk.services.helpdesk import HelpDeskService


def get_service(db: Session = Depends(get_db)) -> HelpDeskService:
    return HelpDeskService(db)


def get_current_session(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> SessionContext:
    """从 Bearer Token 解析出当前会话上下文。"""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not authorization or not authorization.startswith("Bearer "):
        raise credentials_exception

    payload = decode_token(authorization[len("Bearer "):])
    if not payload or payload.get("sub") is None:
        raise credentials_exception

    user = db.get(User, payload["sub"])
    if user is None:
        raise credentials_exception
    # 角色以数据库为准，Token 中的角色仅作提示
    return SessionContext(user_id=user.id, username=user.username, roles=RoleSet(user.roles))

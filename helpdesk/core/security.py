"""密码哈希、随机码与访问 Token 工具。"""

import base64
import hashlib
import hmac
import json
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

from passlib.context import CryptContext

from helpdesk.config import get_settings

# argon2id：内存困难型哈希，密码与一次性密码共用
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

CODE_ALPHABET = string.ascii_letters + string.digits
HIGH_SECURITY_ALPHABET = CODE_ALPHABET + "!@#$%&"


def hash_secret(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_secret(hashed: Optional[str], plain: Optional[str]) -> bool:
    """校验明文与哈希；哈希格式无法识别时视为不匹配。"""

    if not hashed or plain is None:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


def generate_code(length: int, high_security: bool = False) -> str:
    """生成随机码（邀请码 / 一次性密码）。"""

    alphabet = HIGH_SECURITY_ALPHABET if high_security else CODE_ALPHABET
    return "".join(secrets.choice(alphabet) for _ in range(length))


def current_time_seconds() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def create_token(user_id: int, roles: int) -> str:
    """创建 HMAC 签名的访问 Token。"""

    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.token_expire_hours)
    payload = {"sub": user_id, "roles": roles, "exp": expire.isoformat()}
    payload_b64 = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()
    signature = hmac.new(
        settings.secret_key.encode(), payload_b64.encode(), hashlib.sha256
    ).hexdigest()
    return f"{payload_b64}.{signature}"


def decode_token(token: str) -> Optional[dict]:
    """校验签名与过期时间，失败返回 None。"""

    settings = get_settings()
    parts = token.split(".")
    if len(parts) != 2:
        return None
    payload_b64, signature = parts
    expected = hmac.new(
        settings.secret_key.encode(), payload_b64.encode(), hashlib.sha256
    ).hexdigest()
    if not hmac.compare_digest(signature, expected):
        return None
    try:
        payload = json.loads(base64.urlsafe_b64decode(payload_b64.encode()).decode())
        expires = datetime.fromisoformat(payload["exp"])
    except (ValueError, KeyError, TypeError):
        return None
    if datetime.now(timezone.utc) > expires:
        return None
    return payload

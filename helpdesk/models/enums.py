"""请求相关枚举定义 - 管理员操作类型、请求状态。"""

import enum


class AdminAction(str, enum.Enum):
    """管理员请求的操作类型。"""
    DELETE_USER = "DeleteUser"            # 删除目标用户
    UPDATE_ROLE = "UpdateRole"            # 为目标用户授予 context 指定的角色位
    REQUEST_PASSWORD = "RequestPassword"  # 为目标用户签发一次性密码


class RequestState(str, enum.Enum):
    """管理员请求的生命周期。Pending 之后的状态均为终态。"""
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    DENIED = "Denied"


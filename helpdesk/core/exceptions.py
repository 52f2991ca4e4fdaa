"""Help-desk 异常体系。

查询未命中一律返回 ``None``，异常只用于真正的不变量违例。
"""


class HelpDeskError(Exception):
    """Base exception for all help-desk errors."""

    pass


class ValidationError(HelpDeskError):
    """输入或业务规则不合法，调用方可恢复。"""

    pass


class AuthorizationError(ValidationError):
    """执行者缺少所需角色。

    继承 ``ValidationError``：创建时的角色检查失败对调用方而言依然是“请求被拒绝”。
    """

    pass


class ConflictError(HelpDeskError):
    """并发写入冲突：记录已被其他写者改变状态。"""

    def __init__(self, entity: str, entity_id: int, detail: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        message = f"{entity} {entity_id} was modified concurrently"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnsupportedOperationError(HelpDeskError):
    """复合主键仓储上调用了单 id 操作。"""

    pass


class StorageError(HelpDeskError):
    """持久化层失败（连接、约束等），与输入错误区分。"""

    pass

"""已读标记仓储（复合主键）。"""

from __future__ import annotations

from typing import Iterable, Union

from sqlalchemy import delete, select

from helpdesk.core.exceptions import ValidationError
from helpdesk.models import ReadMessage
from helpdesk.repositories.base import CompositeKeyRepository


def _as_ids(message_ids: Union[int, Iterable[int]]) -> list[int]:
    if isinstance(message_ids, int):
        return [message_ids]
    return list(dict.fromkeys(message_ids))


class ReadMessages(CompositeKeyRepository[ReadMessage]):
    model = ReadMessage
    key_columns = ("user_id", "message_id")

    def validate(self, entity: ReadMessage, creating: bool) -> None:
        if entity is None:
            raise ValidationError("Read marker cannot be null.")
        if not entity.user_id or entity.user_id <= 0:
            raise ValidationError("A valid user id is required.")
        if not entity.message_id or entity.message_id <= 0:
            raise ValidationError("A valid message id is required.")

    def mark_as_read(self, user_id: int, message_ids: Union[int, Iterable[int]]) -> None:
        """标记已读；已存在的标记保持不变。"""

        ids = _as_ids(message_ids)
        if not ids:
            return
        existing = set(
            self._scalars(
                select(ReadMessage.message_id).where(
                    ReadMessage.user_id == user_id, ReadMessage.message_id.in_(ids)
                )
            )
        )
        for message_id in ids:
            if message_id in existing:
                continue
            marker = ReadMessage(user_id=user_id, message_id=message_id)
            self.validate(marker, creating=True)
            self.db.add(marker)
        self._flush("mark as read")

    def mark_as_unread(self, user_id: int, message_ids: Union[int, Iterable[int]]) -> None:
        ids = _as_ids(message_ids)
        if not ids:
            return
        self._execute(
            delete(ReadMessage).where(
                ReadMessage.user_id == user_id, ReadMessage.message_id.in_(ids)
            )
        )

    def find_read_messages(self, user_id: int, message_ids: Iterable[int]) -> set[int]:
        """给定消息中 ``user_id`` 已读的那部分 id。"""

        ids = _as_ids(message_ids)
        if not ids:
            return set()
        return set(
            self._scalars(
                select(ReadMessage.message_id).where(
                    ReadMessage.user_id == user_id, ReadMessage.message_id.in_(ids)
                )
            )
        )

    def get_all_by_user(self, user_id: int) -> list[ReadMessage]:
        return self._scalars(
            select(ReadMessage).where(ReadMessage.user_id == user_id).order_by(ReadMessage.message_id)
        )

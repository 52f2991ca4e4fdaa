"""消息类仓储 - 问题、回答、私信、公告与员工消息。

宿主行（Question 等）与其 ``Message`` 一对一；创建时一并写入，
删除时只删消息，宿主行由外键 ``ON DELETE CASCADE`` 带走。
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import and_, delete, exists, func, inspect, or_, select, update

from helpdesk.core import validators
from helpdesk.core.exceptions import ValidationError
from helpdesk.models import (
    Announcement,
    Answer,
    Message,
    PrivateMessage,
    Question,
    StaffMessage,
    User,
)
from helpdesk.repositories.base import Repository
from helpdesk.utils.search import rank_by_keyword

logger = logging.getLogger(__name__)


class Messages(Repository[Message]):
    model = Message

    def validate(self, entity: Message, creating: bool) -> None:
        validators.validate_message(entity)


class _OwnedMessageRepository(Repository):
    """宿主行持有一条 Message 的仓储共性。"""

    def _message_id_of(self, entity_id: int) -> Optional[int]:
        return self._scalar(select(self.model.message_id).where(self.model.id == entity_id))

    def create(self, entity):
        self.validate(entity, creating=True)
        self.db.add(entity.message)
        self.db.add(entity)
        self._flush("create")
        return entity

    def delete(self, entity_id: int) -> None:
        message_id = self._message_id_of(entity_id)
        if message_id is None:
            return
        self._execute(delete(Message).where(Message.id == message_id))
        # 批量删除不会同步会话中的宿主对象
        cached = self.db.identity_map.get(self.db.identity_key(self.model, entity_id))
        if cached is not None:
            self.db.expunge(cached)

    def update(self, entity):
        """只写宿主行自身的列；``message`` 关系被忽略，正文请走 ``update_*_content``。"""

        self.validate(entity, creating=False)
        if not self._exists(getattr(entity, "id", None)):
            return None
        values = {
            attr.key: getattr(entity, attr.key)
            for attr in inspect(self.model).column_attrs
            if attr.key not in ("id", "message_id")
        }
        self._execute(update(self.model).where(self.model.id == entity.id).values(**values))
        return self.get_by_id(entity.id)

    def _update_content(self, entity_id: int, content: str, check) -> bool:
        check(content)
        message_id = self._message_id_of(entity_id)
        if message_id is None:
            return False
        self._execute(update(Message).where(Message.id == message_id).values(content=content))
        return True

    def _by_author(self, user_id: int) -> list:
        return self._scalars(
            select(self.model)
            .join(Message, self.model.message_id == Message.id)
            .where(Message.user_id == user_id)
            .order_by(self.model.id)
        )


def _check_question_content(content: str) -> None:
    if content is None or not content.strip():
        raise ValidationError("Question content cannot be empty.")
    if not validators.MIN_CONTENT_LENGTH <= len(content) <= validators.MAX_CONTENT_LENGTH:
        raise ValidationError("Question content must be between 10 and 2000 characters.")


def _check_answer_content(content: str) -> None:
    if content is None or not content.strip():
        raise ValidationError("Answer content cannot be empty.")
    if not validators.MIN_CONTENT_LENGTH <= len(content) <= validators.MAX_CONTENT_LENGTH:
        raise ValidationError("Answer content must be between 10 and 2000 characters.")


class Questions(_OwnedMessageRepository):
    model = Question

    def validate(self, entity: Question, creating: bool) -> None:
        validators.validate_question(entity)

    def get_questions_by_user(self, user_id: int) -> list[Question]:
        return self._by_author(user_id)

    def search_questions(self, keyword: str) -> list[Question]:
        """按标题与正文做关键词/模糊匹配，相关度高者在前。"""

        return rank_by_keyword(
            self.get_all(), keyword, lambda q: (q.title, q.message.content)
        )

    def update_question_title(self, question_id: int, title: str) -> bool:
        if title is None or not title.strip():
            raise ValidationError("Question title cannot be empty.")
        if not validators.MIN_TITLE_LENGTH <= len(title) <= validators.MAX_TITLE_LENGTH:
            raise ValidationError("Question title must be between 5 and 100 characters.")
        result = self._execute(update(Question).where(Question.id == question_id).values(title=title))
        return result.rowcount == 1

    def update_question_content(self, question_id: int, content: str) -> bool:
        return self._update_content(question_id, content, _check_question_content)

    def get_unanswered_questions(self) -> list[Question]:
        answered = exists().where(Answer.question_id == Question.id)
        return self._scalars(select(Question).where(~answered).order_by(Question.id))

    def get_questions_without_pinned_answer(self) -> list[Question]:
        pinned = exists().where(and_(Answer.question_id == Question.id, Answer.is_pinned.is_(True)))
        return self._scalars(select(Question).where(~pinned).order_by(Question.id))

    def has_pinned_answer(self, question_id: int) -> bool:
        return bool(
            self._scalar(
                select(func.count())
                .select_from(Answer)
                .where(Answer.question_id == question_id, Answer.is_pinned.is_(True))
            )
        )


class Answers(_OwnedMessageRepository):
    model = Answer

    def validate(self, entity: Answer, creating: bool) -> None:
        validators.validate_answer(entity)
        if not creating:
            return
        if entity.question_id is not None and self.db.get(Question, entity.question_id) is None:
            raise ValidationError("The referenced question does not exist.")
        if entity.parent_answer_id is not None and self.db.get(Answer, entity.parent_answer_id) is None:
            raise ValidationError("The referenced answer does not exist.")

    def create(self, entity: Answer) -> Answer:
        if entity.is_pinned is None:
            entity.is_pinned = False
        if entity.is_pinned:
            # 新回答以置顶状态创建时同样要让出唯一位
            self.validate(entity, creating=True)
            self._unpin_others(entity.question_id, None)
        return super().create(entity)

    def _unpin_others(self, question_id: Optional[int], keep_id: Optional[int]) -> None:
        if question_id is None:
            return
        statement = update(Answer).where(
            Answer.question_id == question_id, Answer.is_pinned.is_(True)
        )
        if keep_id is not None:
            statement = statement.where(Answer.id != keep_id)
        self._execute(
            statement.values(is_pinned=False).execution_options(synchronize_session="fetch")
        )

    def get_answers_by_user(self, user_id: int) -> list[Answer]:
        return self._by_author(user_id)

    def search_answers(self, keyword: str) -> list[Answer]:
        return rank_by_keyword(self.get_all(), keyword, lambda a: (a.message.content,))

    def toggle_pin(self, answer_id: int) -> Optional[Answer]:
        """切换置顶；置顶时先取消同一问题下其他回答的置顶。

        只有直接回答问题的回答可以置顶；未找到返回 ``None``。
        """

        answer = self.get_by_id(answer_id)
        if answer is None:
            return None
        if not answer.is_pinned and answer.question_id is None:
            raise ValidationError("Only answers to a question can be pinned.")

        if answer.is_pinned:
            answer.is_pinned = False
        else:
            self._unpin_others(answer.question_id, answer.id)
            answer.is_pinned = True
        self._flush("toggle pin")
        logger.info("Answer %s pinned=%s", answer.id, answer.is_pinned)
        return answer

    def update_answer_content(self, answer_id: int, content: str) -> bool:
        return self._update_content(answer_id, content, _check_answer_content)

    def get_replies_to_answer(self, answer_id: int) -> list[Answer]:
        return self._scalars(
            select(Answer).where(Answer.parent_answer_id == answer_id).order_by(Answer.id)
        )

    def get_replies_to_question(self, question_id: int) -> list[Answer]:
        return self._scalars(
            select(Answer).where(Answer.question_id == question_id).order_by(Answer.id)
        )

    def get_pinned_answer(self, question_id: int) -> Optional[Answer]:
        return self._scalar(
            select(Answer).where(Answer.question_id == question_id, Answer.is_pinned.is_(True))
        )


class PrivateMessages(_OwnedMessageRepository):
    model = PrivateMessage

    def validate(self, entity: PrivateMessage, creating: bool) -> None:
        validators.validate_private_message(entity)
        if not creating:
            return
        if entity.question_id is not None and self.db.get(Question, entity.question_id) is None:
            raise ValidationError("The referenced question does not exist.")
        if (
            entity.parent_private_message_id is not None
            and self.db.get(PrivateMessage, entity.parent_private_message_id) is None
        ):
            raise ValidationError("The referenced private message does not exist.")

    def get_private_messages_by_user(self, user_id: int) -> list[PrivateMessage]:
        return self._by_author(user_id)

    def get_replies_to_private_message(self, private_message_id: int) -> list[PrivateMessage]:
        return self._scalars(
            select(PrivateMessage)
            .where(PrivateMessage.parent_private_message_id == private_message_id)
            .order_by(PrivateMessage.id)
        )

    def get_replies_to_question(self, question_id: int) -> list[PrivateMessage]:
        return self._scalars(
            select(PrivateMessage)
            .where(PrivateMessage.question_id == question_id)
            .order_by(PrivateMessage.id)
        )


class Announcements(_OwnedMessageRepository):
    model = Announcement

    def validate(self, entity: Announcement, creating: bool) -> None:
        validators.validate_announcement(entity)


class StaffMessages(_OwnedMessageRepository):
    model = StaffMessage

    def validate(self, entity: StaffMessage, creating: bool) -> None:
        user = self.db.get(User, entity.user_id) if entity and entity.user_id else None
        staff = self.db.get(User, entity.staff_id) if entity and entity.staff_id else None
        validators.validate_staff_message(entity, user, staff)

    def get_unique_chats(self, user_id: int) -> list[tuple[int, int]]:
        """``user_id`` 参与的所有 (user_id, staff_id) 会话，按最近消息倒序。"""

        rows = self._execute(
            select(StaffMessage.user_id, StaffMessage.staff_id, func.max(StaffMessage.id).label("last"))
            .where(or_(StaffMessage.user_id == user_id, StaffMessage.staff_id == user_id))
            .group_by(StaffMessage.user_id, StaffMessage.staff_id)
            .order_by(func.max(StaffMessage.id).desc())
        ).all()
        return [(row.user_id, row.staff_id) for row in rows]

    def load_chat(self, user_id: int, staff_id: int) -> list[StaffMessage]:
        return self._scalars(
            select(StaffMessage)
            .where(StaffMessage.user_id == user_id, StaffMessage.staff_id == staff_id)
            .order_by(StaffMessage.id)
        )

    def send_message(self, sender_id: int, user_id: int, staff_id: int, content: str) -> StaffMessage:
        """在会话中追加一条消息；发送者必须是会话的一方。"""

        if sender_id not in (user_id, staff_id):
            raise ValidationError("The sender must be a participant of the chat.")
        staff_message = StaffMessage(
            message=Message(user_id=sender_id, content=content),
            user_id=user_id,
            staff_id=staff_id,
        )
        return self.create(staff_message)

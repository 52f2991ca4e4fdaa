"""问答 API - 问题、回答、采纳解与私信。"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from helpdesk.core.session import SessionContext
from helpdesk.dependencies import get_current_session, get_service
from helpdesk.services.helpdesk import HelpDeskService

router = APIRouter()


# === Schemas ===

class QuestionCreate(BaseModel):
    title: str
    content: str


class QuestionResponse(BaseModel):
    id: int
    title: str
    content: str
    user_id: int

    class Config:
        from_attributes = True


class AnswerCreate(BaseModel):
    content: str
    parent_answer_id: Optional[int] = None


class AnswerResponse(BaseModel):
    id: int
    content: str
    user_id: int
    question_id: Optional[int]
    parent_answer_id: Optional[int]
    is_pinned: bool

    class Config:
        from_attributes = True


class PrivateMessageCreate(BaseModel):
    content: str
    parent_private_message_id: Optional[int] = None


class PrivateMessageResponse(BaseModel):
    id: int
    content: str
    user_id: int
    question_id: Optional[int]
    parent_private_message_id: Optional[int]

    @classmethod
    def from_entity(cls, pm) -> "PrivateMessageResponse":
        return cls(
            id=pm.id,
            content=pm.message.content,
            user_id=pm.message.user_id,
            question_id=pm.question_id,
            parent_private_message_id=pm.parent_private_message_id,
        )


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


# === API 端点 ===

@router.get("/", response_model=List[QuestionResponse])
def list_questions(
    q: Optional[str] = None,
    unanswered: bool = False,
    service: HelpDeskService = Depends(get_service),
):
    """问题列表，可按关键词模糊搜索或只看未回答的问题。"""
    if q:
        return service.questions.search_questions(q)
    if unanswered:
        return service.questions.get_unanswered_questions()
    return service.questions.get_all()


@router.post("/", response_model=QuestionResponse)
def create_question(
    data: QuestionCreate,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    return service.create_question(ctx, data.title, data.content)


@router.get("/{question_id}", response_model=QuestionResponse)
def get_question(question_id: int, service: HelpDeskService = Depends(get_service)):
    question = service.questions.get_by_id(question_id)
    if question is None:
        raise _not_found("Question")
    return question


@router.get("/{question_id}/answers", response_model=List[AnswerResponse])
def list_answers(question_id: int, service: HelpDeskService = Depends(get_service)):
    return service.answers.get_replies_to_question(question_id)


@router.post("/{question_id}/answers", response_model=AnswerResponse)
def create_answer(
    question_id: int,
    data: AnswerCreate,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    """回答问题；给出 ``parent_answer_id`` 时作为对该回答的回复。"""
    if data.parent_answer_id is not None:
        return service.create_answer(ctx, data.content, parent_answer_id=data.parent_answer_id)
    return service.create_answer(ctx, data.content, question_id=question_id)


@router.post("/answers/{answer_id}/pin", response_model=AnswerResponse)
def toggle_solution(
    answer_id: int,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    answer = service.toggle_solution(ctx, answer_id)
    if answer is None:
        raise _not_found("Answer")
    return answer


@router.post("/{question_id}/private-messages", response_model=PrivateMessageResponse)
def create_private_message(
    question_id: int,
    data: PrivateMessageCreate,
    ctx: SessionContext = Depends(get_current_session),
    service: HelpDeskService = Depends(get_service),
):
    if data.parent_private_message_id is not None:
        pm = service.create_private_message(
            ctx, data.content, parent_private_message_id=data.parent_private_message_id
        )
    else:
        pm = service.create_private_message(ctx, data.content, question_id=question_id)
    return PrivateMessageResponse.from_entity(pm)

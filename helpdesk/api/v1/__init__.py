"""API v1 路由包入口。"""

from fastapi import APIRouter

from helpdesk.api.v1 import auth, questions, requests, reviews

router = APIRouter(prefix="/api/v1")

# 注册子路由
router.include_router(auth.router, prefix="/auth", tags=["账户"])
router.include_router(questions.router, prefix="/questions", tags=["问答"])
router.include_router(requests.router, prefix="/requests", tags=["请求"])
router.include_router(reviews.router, prefix="/reviews", tags=["信任列表"])

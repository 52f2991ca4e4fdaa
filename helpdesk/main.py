"""FastAPI 入口：日志配置、路由注册与数据库表初始化。"""

import logging

from fastapi import FastAPI

from helpdesk import __version__
from helpdesk.api.errors import register_exception_handlers
from helpdesk.api.v1 import router as api_v1_router
from helpdesk.config import get_settings
from helpdesk.db import Base, engine

import helpdesk.models  # noqa: F401  注册全部模型到 metadata

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    """应用工厂，便于测试与拓展路由。"""

    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="Help-Desk API", version=__version__)
    register_exception_handlers(app)
    app.include_router(api_v1_router)

    @app.on_event("startup")
    def init_models() -> None:
        """启动时确保表存在。"""

        Base.metadata.create_all(bind=engine)
        logger.info("Database schema ready")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()

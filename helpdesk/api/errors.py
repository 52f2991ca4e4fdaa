"""领域异常到 HTTP 状态码的映射。"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from helpdesk.core.exceptions import (
    AuthorizationError,
    ConflictError,
    HelpDeskError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# 子类在前：AuthorizationError 同时也是 ValidationError
STATUS_BY_ERROR = (
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (UnsupportedOperationError, status.HTTP_400_BAD_REQUEST),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: HelpDeskError) -> int:
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HelpDeskError)
    async def handle_helpdesk_error(request: Request, exc: HelpDeskError) -> JSONResponse:
        code = status_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc)})

"""
TurtleCoin Chat Service - FastAPI Application

1:1 채팅방 관리, 메시지 전송/조회, SSE 실시간 알림을 담당하는 서비스
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from turtlechat.core.config import settings
from turtlechat.core.logging import setup_logging
from turtlechat.database import init_databases, close_databases
from turtlechat.middleware.error_handler import (
    ErrorHandlerMiddleware,
    create_http_exception_handler,
    create_validation_exception_handler,
)
from turtlechat.middleware.logging_middleware import LoggingMiddleware
from turtlechat.services.chat_store import init_chat_store
from turtlechat.services.push_channel import push_channel
from turtlechat.api import chat_room, message, notification, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} starting up...")

    await init_databases()
    init_chat_store(settings.chat_store_backend)

    yield

    # Shutdown
    logger.info(f"{settings.app_name} shutting down...")

    # 열린 SSE 스트림 종료
    push_channel.close_all()
    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

# Middleware (나중에 추가한 것이 바깥쪽)
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handlers
app.add_exception_handler(HTTPException, create_http_exception_handler())
app.add_exception_handler(RequestValidationError, create_validation_exception_handler())

# Include routers
app.include_router(health.router)
app.include_router(chat_room.router)
app.include_router(message.router)
app.include_router(notification.router)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "turtlechat.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

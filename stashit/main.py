"""
Stash It Messaging Service - FastAPI Application

구매자와 판매자 간 실시간 메시지 전송, 타이핑 표시, 읽음 확인을 담당하는 서비스
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from stashit import api
from stashit.api import include_routers
from stashit.core.config import settings
from stashit.core.logging import get_logger, setup_logging
from stashit.database import AsyncSessionLocal, close_databases, init_databases
from stashit.middleware.error_handler import ErrorHandlerMiddleware, create_http_exception_handler
from stashit.middleware.logging_middleware import LoggingMiddleware
from stashit.services.gateway import ChatGateway
from stashit.services.online_status_service import online_status_service
from stashit.websockets.handlers import ChatServer

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} starting up...")

    await init_databases()

    app.state.chat_server = ChatServer(
        ChatGateway(AsyncSessionLocal),
        presence=online_status_service
    )

    yield

    # Shutdown
    logger.info(f"{settings.app_name} shutting down...")
    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)

app.add_exception_handler(HTTPException, create_http_exception_handler())

# Include routers
include_routers(app, "api", api.__path__)

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
        "stashit.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

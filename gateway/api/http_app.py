# ==============================
# FastAPI App Factory
# ==============================
from __future__ import annotations

from fastapi import FastAPI

from gateway.api.routes_chat import router as chat_router


def create_app() -> FastAPI:
    app = FastAPI(title="nucleus", version="0.1.0")
    app.include_router(chat_router, prefix="/api")
    return app

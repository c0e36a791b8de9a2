#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Main application entry point - OpenAI-compatible gateway
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from compat_gateway.config import get_settings
from compat_gateway.errors import ApiError, api_error_handler, validation_error_handler
from compat_gateway.helpers import configure_structlog, error_log, info_log
from compat_gateway.ollama_api import router as ollama_router
from compat_gateway.openai_api import router as openai_router
from compat_gateway.services.openai_service import ChatCompletionService
from compat_gateway.state import AppState


def create_app(state: Optional[AppState] = None) -> FastAPI:
    """Build the application; ``state`` defaults to the engine-backed production state."""
    if state is None:
        state = AppState.initialize(get_settings())
    configure_structlog(state.settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        info_log(
            "Gateway started",
            host=state.settings.LISTEN_HOST,
            port=state.settings.LISTEN_PORT,
            models=state.model_ids(),
        )
        yield
        await state.aclose()

    app = FastAPI(
        title="Compat Gateway",
        description="OpenAI-compatible chat completions over a Responses-style engine",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.gateway = state
    app.state.chat_service = ChatCompletionService(state)

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        if response.status_code < 400:
            info_log("handled request", method=request.method, path=request.url.path, status=response.status_code)
        else:
            error_log("request failed", method=request.method, path=request.url.path, status=response.status_code)
        return response

    app.include_router(openai_router)
    app.include_router(ollama_router)

    @app.options("/")
    async def handle_options():
        """Handle OPTIONS requests"""
        return Response(status_code=200)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.LISTEN_HOST,
        port=settings.LISTEN_PORT,
        http="httptools",
        reload=False,
        log_level="info" if settings.LOG_LEVEL != "false" else "critical",
    )

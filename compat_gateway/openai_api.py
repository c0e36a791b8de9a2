"""
OpenAI API endpoints
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from .errors import ApiError, InternalError
from .helpers import (
    error_log,
    request_stage_log,
    reset_request_context,
)
from .schemas import ChatCompletionRequest, Model, ModelsResponse
from .services.openai_service import REQUEST_CONTEXT_KEYS, ChatCompletionService
from .state import AppState

router = APIRouter()


def get_state(request: Request) -> AppState:
    return request.app.state.gateway


def get_service(request: Request) -> ChatCompletionService:
    return request.app.state.chat_service


@router.get("/v1/models")
async def list_models(state: AppState = Depends(get_state)):
    """List available models"""
    return ModelsResponse(data=[Model(id=model_id) for model_id in state.model_ids()])


@router.get("/healthz")
async def healthz(state: AppState = Depends(get_state)):
    authenticated = state.auth.is_authenticated()
    return {
        "ok": True,
        "authenticated": authenticated,
        "message": "Engine credentials detected" if authenticated else "Engine credentials missing; set ENGINE_API_KEY",
        "config": {
            "expose_reasoning_models": state.settings.EXPOSE_REASONING_MODELS,
            "web_search_request": state.web_search_enabled,
            "developer_prompt_mode": str(state.settings.DEVELOPER_PROMPT_MODE),
            "models": state.model_ids(),
        },
    }


@router.post("/v1/chat/completions")
async def chat_completions(
    request: ChatCompletionRequest,
    service: ChatCompletionService = Depends(get_service),
):
    """Handle chat completion requests, streaming or not"""
    role = request.messages[0].role if request.messages else "unknown"
    request_stage_log(
        "received",
        "Client request received",
        model=request.model,
        stream=bool(request.stream),
        entry_role=role,
        message_count=len(request.messages),
        tools_count=len(request.tools) if request.tools else 0,
    )

    try:
        payload = service.prepare_request(request)

        if not request.stream:
            try:
                return await service.handle_non_stream_request(payload)
            finally:
                reset_request_context(*REQUEST_CONTEXT_KEYS)

        lines, channel = await service.stream_response(payload)
        streaming_response = StreamingResponse(
            lines,
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
            background=BackgroundTask(service.release_stream, channel),
        )
        request_stage_log("stream_ready", "Streaming response handed to FastAPI", media_type="text/event-stream")
        return streaming_response

    except ApiError as exc:
        reset_request_context(*REQUEST_CONTEXT_KEYS)
        error_log("[REQUEST] request rejected", code=exc.code, error=exc.message)
        raise
    except Exception as e:
        reset_request_context(*REQUEST_CONTEXT_KEYS)
        error_log("[REQUEST] unexpected error while handling request", error=str(e))
        raise InternalError("Internal server error") from e

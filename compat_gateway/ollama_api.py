"""
Ollama-compatible discovery endpoints

Clients that only speak the Ollama API use these to list and inspect the
gateway's models; the metadata is fixed.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .openai_api import get_state
from .schemas import OllamaShowRequest
from .state import AppState

router = APIRouter(prefix="/api")

OLLAMA_VERSION = "0.12.10"

OLLAMA_MODEL_DETAILS = {
    "parent_model": "",
    "format": "gguf",
    "family": "llama",
    "families": ["llama"],
    "parameter_size": "8.0B",
    "quantization_level": "Q4_0",
}

OLLAMA_MODEL_METADATA = {
    "modified_at": "2023-10-01T00:00:00Z",
    "size": 815319791,
    "digest": "8648f39daa8fbf5b18c7b4e6a8fb4990c692751d49917417b8842ca5758e7ffc",
}

OLLAMA_SHOW_MODELFILE = '''# Modelfile generated by "ollama show"
# To build a new Modelfile based on this one, replace the FROM line with:
# FROM llava:latest

FROM /models/blobs/sha256:placeholder
TEMPLATE """{{ .System }}
USER: {{ .Prompt }}
ASSISTANT: """
PARAMETER num_ctx 100000
PARAMETER stop "</s>"
PARAMETER stop "USER:"
PARAMETER stop "ASSISTANT:"'''

OLLAMA_SHOW_PARAMETERS = '''num_keep 24
stop "<|start_header_id|>"
stop "<|end_header_id|>"
stop "<|eot_id|>"'''

OLLAMA_SHOW_TEMPLATE = '''{{ if .System }}<|start_header_id|>system<|end_header_id|>

{{ .System }}<|eot_id|>{{ end }}{{ if .Prompt }}<|start_header_id|>user<|end_header_id|>

{{ .Prompt }}<|eot_id|>{{ end }}<|start_header_id|>assistant<|end_header_id|>

{{ .Response }}<|eot_id|>'''


def build_ollama_entry(model_id: str) -> dict:
    return {
        "name": model_id,
        "model": model_id,
        **OLLAMA_MODEL_METADATA,
        "details": dict(OLLAMA_MODEL_DETAILS),
    }


def build_ollama_show_payload() -> dict:
    return {
        "modelfile": OLLAMA_SHOW_MODELFILE,
        "parameters": OLLAMA_SHOW_PARAMETERS,
        "template": OLLAMA_SHOW_TEMPLATE,
        "details": dict(OLLAMA_MODEL_DETAILS),
        "model_info": {
            "general.architecture": "llama",
            "general.file_type": 2,
            "llama.context_length": 2000000,
        },
        "capabilities": ["completion", "vision", "tools", "thinking"],
    }


@router.get("/version")
async def api_version():
    return {"version": OLLAMA_VERSION}


@router.get("/tags")
async def api_tags(state: AppState = Depends(get_state)):
    return {"models": [build_ollama_entry(model_id) for model_id in state.model_ids()]}


@router.post("/show")
async def api_show(request: OllamaShowRequest):
    if not (request.model or "").strip():
        return JSONResponse(status_code=400, content={"error": "Model not found"})
    return build_ollama_show_payload()

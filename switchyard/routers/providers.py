"""
Providers API router.
GET  /providers                          registered provider names
GET  /providers/{provider}/default-model
GET  /providers/{provider}/models
POST /providers/validate                 live credential probe
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from switchyard.agent.manager import CompletionManager
from switchyard.agent.validator import ProviderValidator
from switchyard.errors import AIError, ErrorCode
from switchyard.models.base import CompletionConfig
from switchyard.routers.chat import get_manager

router = APIRouter(prefix="/providers", tags=["providers"])


class ValidateRequest(BaseModel):
    provider: str = ""
    config: Optional[CompletionConfig] = None


def get_validator(request: Request) -> ProviderValidator:
    return request.app.state.validator


@router.get("")
async def list_providers(manager: CompletionManager = Depends(get_manager)):
    names = manager.get_available_providers()
    details = []
    for name in names:
        info = manager.describe_provider(name)
        details.append({"name": name, "display_name": info.display_name if info else name})
    return {"providers": names, "details": details}


@router.get("/{provider}/default-model")
async def default_model(provider: str, manager: CompletionManager = Depends(get_manager)):
    return {"default_model": manager.get_default_model(provider)}


@router.get("/{provider}/models")
async def supported_models(provider: str, manager: CompletionManager = Depends(get_manager)):
    return {"models": manager.get_supported_models(provider)}


@router.post("/validate")
async def validate(body: ValidateRequest, validator: ProviderValidator = Depends(get_validator)):
    if not body.provider or body.config is None:
        error = AIError(ErrorCode.INVALID_REQUEST, "Missing required fields: provider, config")
        return JSONResponse({"valid": False, "error": error.to_api_error()}, status_code=error.http_status)

    result = await validator.validate_provider(body.provider, body.config)
    return result.model_dump(exclude_none=True)

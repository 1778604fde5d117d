from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ai.gemini import GeminiClient
from utils.auth import require_caller

router = APIRouter()


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(default="")
    system: Optional[str] = Field(default=None, alias="systemInstruction")
    temperature: float = Field(default=0.7)
    max_output_tokens: int = Field(default=512, alias="maxOutputTokens")
    response_format: str = Field(default="text", alias="responseFormat")


@router.post("/ai/generate")
def ai_generate(req: GenerateRequest, uid: str = Depends(require_caller)):
    return GeminiClient().generate(
        req.prompt,
        system=req.system,
        temperature=req.temperature,
        max_output_tokens=req.max_output_tokens,
        response_format=req.response_format,
    )

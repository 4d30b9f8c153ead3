"""请求/响应模型：题目分析与对话接口。字段别名与前端约定的驼峰命名一致，必填校验在路由中完成以返回约定的错误信息。

请求体中的会话状态由调用方每轮回传，可能带着旧版本或被篡改的字段；
这里统一在 before 校验器里宽松修正，而不是让 FastAPI 直接 422。
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dialogue.prompts import clamp_frustration
from dialogue.schemas import ChatMessage, ChatResponse
from problem_analysis.normalizer import normalize_step
from problem_analysis.schemas import AnalyzedProblem, ProblemStep


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def _text_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class AnalyzeProblemRequest(_CamelModel):
    image_base64: str | None = Field(None, alias="imageBase64", description="题目图片 base64，可带 data URL 前缀")
    mime_type: str = Field("image/jpeg", alias="mimeType")

    @field_validator("image_base64", mode="before")
    @classmethod
    def _image_text(cls, v):
        return _text_or_none(v)

    @field_validator("mime_type", mode="before")
    @classmethod
    def _mime_or_default(cls, v):
        return v if isinstance(v, str) and v else "image/jpeg"


class AnalyzeProblemResponse(_CamelModel):
    success: bool = True
    data: AnalyzedProblem
    ocr_mode: bool = Field(..., alias="ocrMode")
    ocr_element_count: int = Field(..., alias="ocrElementCount")


class MathChatRequest(_CamelModel):
    message: str | None = None
    steps: list[ProblemStep] | None = None
    current_step_index: int | None = Field(None, alias="currentStepIndex")
    conversation_history: list[ChatMessage] = Field(default_factory=list, alias="conversationHistory")
    should_reveal_answer: bool = Field(False, alias="shouldRevealAnswer")
    frustration_level: int = Field(0, alias="frustrationLevel", description="调用方维护的挫败感 0~10")
    problem_text: str | None = Field(None, alias="problemText")

    @field_validator("message", "problem_text", mode="before")
    @classmethod
    def _text_fields(cls, v):
        return _text_or_none(v)

    @field_validator("steps", mode="before")
    @classmethod
    def _normalize_steps(cls, v):
        # 非列表视为缺失，交给路由返回 400；每个步骤按分析结果同一套规则修正
        if not isinstance(v, list):
            return None
        return [normalize_step(step, i) for i, step in enumerate(v)]

    @field_validator("current_step_index", mode="before")
    @classmethod
    def _integral_index(cls, v):
        if isinstance(v, bool):
            return None
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v if isinstance(v, int) else None

    @field_validator("conversation_history", mode="before")
    @classmethod
    def _coerce_history(cls, v):
        # 非 user 角色一律当作模型一方的发言
        if not isinstance(v, list):
            return []
        history = []
        for item in v:
            if not isinstance(item, dict):
                continue
            content = item.get("content")
            history.append({
                "role": "user" if item.get("role") == "user" else "assistant",
                "content": content if isinstance(content, str) else ("" if content is None else str(content)),
            })
        return history

    @field_validator("should_reveal_answer", mode="before")
    @classmethod
    def _truthy(cls, v):
        return bool(v)

    @field_validator("frustration_level", mode="before")
    @classmethod
    def _clamp_frustration(cls, v):
        return clamp_frustration(v)


class MathChatResponse(_CamelModel):
    success: bool = True
    data: ChatResponse


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None

"""对话阶段的数据模型：调用方回传的历史消息与每轮返回结果。"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply: str
    next_step_index: int = Field(..., alias="nextStepIndex", ge=0)
    is_step_complete: bool = Field(..., alias="isStepComplete")
    current_goal: str = Field(..., alias="currentGoal")
    current_kc: str = Field(..., alias="currentKC")
    hint_level: int = Field(..., alias="hintLevel", ge=0, le=3)

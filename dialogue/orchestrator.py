"""单轮苏格拉底对话：构造系统指令 → 调用模型 → 恢复级联 → 规范化。服务端不保存任何会话状态。"""
import logging
from typing import Callable, Iterable

from llm_runner import invoke_chat_plain
from problem_analysis.schemas import ProblemStep

from .normalizer import normalize_chat_response
from .parser import parse_chat_response
from .prompts import OPENING_USER_TURN, build_system_prompt
from .schemas import ChatMessage, ChatResponse

logger = logging.getLogger(__name__)

ChatInvoker = Callable[[str, list[ChatMessage], str], str]


def build_model_history(history: Iterable[ChatMessage] | None) -> list[ChatMessage]:
    """历史第一条不是学生发的时，补一条开场白。"""
    turns = list(history or [])
    if turns and turns[0].role != "user":
        turns.insert(0, ChatMessage(role="user", content=OPENING_USER_TURN))
    return turns


def run_chat_turn(
    message: str,
    steps: list[ProblemStep],
    current_step_index: int,
    *,
    conversation_history: list[ChatMessage] | None = None,
    should_reveal_answer: bool = False,
    frustration_level: int = 0,
    problem_text: str | None = None,
    invoke: ChatInvoker | None = None,
) -> ChatResponse:
    if not message or not steps:
        raise ValueError("message 与 steps 不能为空")
    if not 0 <= current_step_index < len(steps):
        raise ValueError(f"currentStepIndex 越界: {current_step_index}")

    system_prompt = build_system_prompt(
        steps,
        current_step_index,
        problem_text=problem_text,
        frustration_level=frustration_level,
        should_reveal_answer=should_reveal_answer,
    )
    history = build_model_history(conversation_history)
    logger.info(
        "[Chat] step=%d/%d history=%d frustration=%s reveal=%s",
        current_step_index + 1, len(steps), len(history), frustration_level, should_reveal_answer,
    )

    invoke = invoke or invoke_chat_plain
    text = invoke(system_prompt, history, message)

    parsed = parse_chat_response(text, steps, current_step_index)
    response = normalize_chat_response(parsed, steps, current_step_index)
    logger.info(
        "[Chat] 完成 complete=%s next=%d hint=%d",
        response.is_step_complete, response.next_step_index, response.hint_level,
    )
    return response

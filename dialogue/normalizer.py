"""对话回复规范化：步骤推进、目标/知识点回填、提示级别钳制。"""
import math

from problem_analysis.schemas import ProblemStep

from .schemas import ChatResponse

DEFAULT_REPLY = "继续加油！"
MAX_HINT_LEVEL = 3


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _as_hint_level(value) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return min(MAX_HINT_LEVEL, max(0, int(value)))


def normalize_chat_response(
    response: dict,
    steps: list[ProblemStep],
    current_step_index: int,
) -> ChatResponse:
    """
    只有 isStepComplete 为真且当前不是最后一步时才前进一步；
    currentGoal / currentKC 取自计算出的下一步，不信任模型回显的值。
    """
    is_last_step = current_step_index >= len(steps) - 1
    is_step_complete = _as_bool(response.get("isStepComplete"))

    next_index = current_step_index
    if is_step_complete and not is_last_step:
        next_index = current_step_index + 1
    target = steps[next_index]

    reply = response.get("reply")
    if not isinstance(reply, str) or not reply:
        reply = DEFAULT_REPLY

    return ChatResponse(
        reply=reply,
        is_step_complete=is_step_complete,
        next_step_index=next_index,
        current_goal=target.goal,
        current_kc=target.kc,
        hint_level=_as_hint_level(response.get("hintLevel")),
    )

"""步骤合成：调用模型拆解题目，并用恢复级联把原始文本变成题目结构。"""
import logging
from typing import Callable

from llm_runner import _truncate_for_log, invoke_vision_plain
from response_recovery import ParsedOk, parse_brace_block, parse_whole_json, run_cascade

from .normalizer import create_fallback_problem

logger = logging.getLogger(__name__)

# 整段 JSON → 首个 {...} 块；都失败则用兜底题目
SYNTHESIS_ATTEMPTS = [parse_whole_json, parse_brace_block]

VisionInvoker = Callable[[str, str, str], str]


def parse_problem_response(text: str) -> dict:
    """恢复级联：解析失败不抛错，返回通用两步兜底题目。"""
    result, tier = run_cascade(text, SYNTHESIS_ATTEMPTS)
    if isinstance(result, ParsedOk):
        if tier > 1:
            logger.info("[Analyze] 整段 JSON 解析失败，第 %d 级恢复成功", tier)
        return result.value
    logger.warning(
        "[Analyze] 模型输出无法解析，使用兜底题目: %s; raw=%s",
        getattr(result, "reason", ""), _truncate_for_log(text or ""),
    )
    return create_fallback_problem()


def synthesize_steps(
    prompt: str,
    image_base64: str,
    mime_type: str = "image/jpeg",
    *,
    invoke: VisionInvoker | None = None,
) -> dict:
    """发送提示词与图片，返回未规范化的题目 dict。模型调用异常向上抛出。"""
    invoke = invoke or invoke_vision_plain
    text = invoke(prompt, image_base64, mime_type)
    logger.info("[Analyze] 模型返回长度 %d", len(text or ""))
    return parse_problem_response(text)

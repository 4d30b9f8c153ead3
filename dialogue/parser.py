"""
对话回复的恢复级联。

1. 整段 JSON
2. 首个 {...} 块
3. 正则逐字段提取（reply 必须能取到），手动反转义
4. 以上都失败：把原文当作 reply，其余字段取安全默认值
"""
import logging
import re

from problem_analysis.schemas import ProblemStep
from response_recovery import (
    ParsedFail,
    ParsedOk,
    ParsedPartial,
    ParseResult,
    parse_brace_block,
    parse_whole_json,
    run_cascade,
)

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "让我们继续思考这个问题..."

_STRING_VALUE = r'"((?:[^"\\]|\\.)*)"'
_REPLY_RE = re.compile(r'"reply"\s*:\s*' + _STRING_VALUE, re.DOTALL)
_GOAL_RE = re.compile(r'"currentGoal"\s*:\s*' + _STRING_VALUE, re.DOTALL)
_KC_RE = re.compile(r'"currentKC"\s*:\s*' + _STRING_VALUE, re.DOTALL)
_COMPLETE_RE = re.compile(r'"isStepComplete"\s*:\s*(true|false)')
_NEXT_INDEX_RE = re.compile(r'"nextStepIndex"\s*:\s*(\d+)')
_HINT_LEVEL_RE = re.compile(r'"hintLevel"\s*:\s*(\d+)')

# \\ 必须和其它转义一起按从左到右的顺序处理，否则 "\\n" 会被错当成换行
_ESCAPES = {"n": "\n", "r": "", "t": "\t", '"': '"', "\\": "\\"}
_ESCAPE_RE = re.compile(r'\\([nrt"\\])')


def unescape_json_fragment(s: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], s)


def extract_fields(text: str) -> ParseResult:
    """第 3 级：从残缺 JSON 中逐字段提取；取不到 reply 视为失败。"""
    reply_match = _REPLY_RE.search(text or "")
    if not reply_match:
        return ParsedFail("未找到 reply 字段")

    fields = {"reply": unescape_json_fragment(reply_match.group(1))}
    complete = _COMPLETE_RE.search(text)
    if complete:
        fields["isStepComplete"] = complete.group(1) == "true"
    next_index = _NEXT_INDEX_RE.search(text)
    if next_index:
        fields["nextStepIndex"] = int(next_index.group(1))
    goal = _GOAL_RE.search(text)
    if goal:
        fields["currentGoal"] = unescape_json_fragment(goal.group(1))
    kc = _KC_RE.search(text)
    if kc:
        fields["currentKC"] = unescape_json_fragment(kc.group(1))
    hint_level = _HINT_LEVEL_RE.search(text)
    if hint_level:
        fields["hintLevel"] = int(hint_level.group(1))
    return ParsedPartial(fields)


CHAT_ATTEMPTS = [parse_whole_json, parse_brace_block, extract_fields]


def create_fallback_response(text: str, steps: list[ProblemStep], current_step_index: int) -> dict:
    """第 4 级：原文当作回复，不推进步骤。"""
    step = steps[current_step_index]
    return {
        "reply": text or FALLBACK_REPLY,
        "isStepComplete": False,
        "nextStepIndex": current_step_index,
        "currentGoal": step.goal,
        "currentKC": step.kc,
        "hintLevel": 0,
    }


def parse_chat_response(text: str, steps: list[ProblemStep], current_step_index: int) -> dict:
    """返回未规范化的回复 dict，字段可能缺失或类型不对，交给 normalize_chat_response 处理。"""
    result, tier = run_cascade(text, CHAT_ATTEMPTS)
    if isinstance(result, ParsedOk):
        return result.value
    if isinstance(result, ParsedPartial):
        logger.info("[Chat] JSON 解析失败，正则提取到字段 %s", sorted(result.fields))
        step = steps[current_step_index]
        return {
            "isStepComplete": False,
            "nextStepIndex": current_step_index,
            "currentGoal": step.goal,
            "currentKC": step.kc,
            "hintLevel": 0,
            **result.fields,
        }
    logger.warning("[Chat] 回复无法解析，原文作为 reply: %s", result.reason)
    return create_fallback_response(text, steps, current_step_index)

"""
模型原始文本的恢复级联。

生成模型不保证只输出纯 JSON（可能夹带说明文字、代码块围栏，或字符串内含未转义换行）。
每一级都是纯函数，返回带标签的结果而不是抛异常：
- ParsedOk：得到完整的 JSON 对象
- ParsedPartial：只恢复出部分字段
- ParsedFail：本级失败
run_cascade 按顺序尝试，遇到第一个非失败结果即停止。
"""
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Union


@dataclass(frozen=True)
class ParsedOk:
    value: dict[str, Any]


@dataclass(frozen=True)
class ParsedPartial:
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ParsedFail:
    reason: str = ""


ParseResult = Union[ParsedOk, ParsedPartial, ParsedFail]
Attempt = Callable[[str], ParseResult]


def _loads_object(candidate: str) -> ParseResult:
    try:
        value = json.loads(candidate)
    except (json.JSONDecodeError, TypeError) as e:
        return ParsedFail(f"JSON 解析失败: {e}")
    if not isinstance(value, dict):
        return ParsedFail(f"JSON 顶层不是对象: {type(value).__name__}")
    return ParsedOk(value)


def parse_whole_json(text: str) -> ParseResult:
    """第 1 级：整段文本按 JSON 解析。"""
    if not text or not text.strip():
        return ParsedFail("空文本")
    return _loads_object(text)


def parse_brace_block(text: str) -> ParseResult:
    """第 2 级：取第一个 { 到最后一个 } 之间的内容解析。"""
    if not text:
        return ParsedFail("空文本")
    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace == -1 or last_brace <= first_brace:
        return ParsedFail("未找到 {...} 块")
    return _loads_object(text[first_brace : last_brace + 1])


def run_cascade(text: str, attempts: list[Attempt]) -> tuple[ParseResult, int]:
    """依次执行 attempts，返回 (结果, 命中的级别序号，从 1 开始；全部失败时为 0)。"""
    reasons = []
    for tier, attempt in enumerate(attempts, start=1):
        result = attempt(text)
        if not isinstance(result, ParsedFail):
            return result, tier
        reasons.append(result.reason)
    return ParsedFail("; ".join(r for r in reasons if r)), 0

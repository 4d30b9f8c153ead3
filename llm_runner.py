"""基于 LangChain 的 Gemini 调用，供题目拆解（图片+提示词）与苏格拉底对话（系统指令+多轮历史）共用。只返回原始文本，结构化解析交给各自的恢复级联。"""
import logging
from typing import Iterable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from config import get_settings

logger = logging.getLogger(__name__)

# 日志中 prompt/response 最大展示长度，超出截断
_LOG_CONTENT_MAX = 2000


class ModelNotConfiguredError(RuntimeError):
    """未配置 GEMINI_API_KEY。"""


def _truncate_for_log(s: str, max_len: int = _LOG_CONTENT_MAX) -> str:
    if len(s) <= max_len:
        return s
    return s[:max_len] + f"... [截断，共 {len(s)} 字]"


def _message_text(msg) -> str:
    """取出模型回复文本；content 为分段列表时拼接其中的 text 部分。"""
    content = msg.content if hasattr(msg, "content") else str(msg)
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text", "")))
            else:
                parts.append(str(item))
        return "".join(parts)
    return content or ""


def get_chat_model(
    *,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
) -> BaseChatModel:
    """返回配置好的 Gemini ChatModel（经 OpenAI 兼容端点），参数未传时使用配置文件中的值。"""
    s = get_settings()
    if not s.gemini_api_key:
        raise ModelNotConfiguredError("GEMINI_API_KEY not configured")
    kwargs = {
        "model": model or s.gemini_model,
        "temperature": temperature if temperature is not None else s.llm_temperature,
        "api_key": s.gemini_api_key,
        "base_url": s.gemini_base_url,
        "request_timeout": timeout if timeout is not None else s.llm_request_timeout,
    }
    if max_tokens is not None or s.llm_max_tokens is not None:
        kwargs["max_tokens"] = max_tokens if max_tokens is not None else s.llm_max_tokens
    return ChatOpenAI(**kwargs)


def invoke_vision_plain(
    prompt: str,
    image_base64: str,
    mime_type: str = "image/jpeg",
    *,
    model: str | None = None,
) -> str:
    """图片 + 提示词的单轮多模态调用，返回原始文本。"""
    if not image_base64:
        raise ValueError("image_base64 不能为空")
    llm = get_chat_model(model=model)
    url = f"data:{mime_type};base64,{image_base64}"
    content = [
        {"type": "text", "text": prompt},
        {"type": "image_url", "image_url": {"url": url}},
    ]
    logger.info("[LLM] invoke_vision_plain 请求 prompt_len=%d image_base64_len=%d", len(prompt), len(image_base64))
    logger.info("[LLM] prompt: %s", _truncate_for_log(prompt))
    msg = llm.invoke([HumanMessage(content=content)])
    out = _message_text(msg)
    logger.info("[LLM] invoke_vision_plain 响应 response_len=%d", len(out))
    logger.debug("[LLM] response: %s", _truncate_for_log(out))
    return out


def build_chat_messages(
    system_prompt: str,
    history: Iterable,
    message: str,
) -> list[BaseMessage]:
    """系统指令 + 历史（user→HumanMessage，其余→AIMessage）+ 本轮学生消息。"""
    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for item in history:
        if item.role == "user":
            messages.append(HumanMessage(content=item.content))
        else:
            messages.append(AIMessage(content=item.content))
    messages.append(HumanMessage(content=message))
    return messages


def invoke_chat_plain(
    system_prompt: str,
    history: Iterable,
    message: str,
    *,
    model: str | None = None,
) -> str:
    """多轮对话调用，history 元素需有 role / content 属性。返回原始文本。"""
    llm = get_chat_model(model=model)
    messages = build_chat_messages(system_prompt, history, message)
    logger.info("[LLM] invoke_chat_plain 请求 system_len=%d turns=%d", len(system_prompt), len(messages) - 1)
    logger.debug("[LLM] system: %s", _truncate_for_log(system_prompt))
    msg = llm.invoke(messages)
    out = _message_text(msg)
    logger.info("[LLM] invoke_chat_plain 响应 response_len=%d", len(out))
    logger.debug("[LLM] response: %s", _truncate_for_log(out))
    return out

"""FastAPI 路由：POST /analyze-problem 拆解题目图片，POST /math-chat 进行一轮苏格拉底对话。"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import (
    AnalyzeProblemRequest,
    AnalyzeProblemResponse,
    ErrorResponse,
    MathChatRequest,
    MathChatResponse,
)
from config import get_settings
from dialogue.orchestrator import run_chat_turn
from llm_runner import ModelNotConfiguredError
from problem_analysis.analyzer import analyze_problem_image
from problem_analysis.prompts import PromptTemplates, load_prompt_templates

logger = logging.getLogger(__name__)
router = APIRouter()

ANALYZE_ERROR_MESSAGE = "分析题目时出错，请稍后重试"
CHAT_ERROR_MESSAGE = "对话处理出错，请稍后重试"
NOT_CONFIGURED_MESSAGE = "GEMINI_API_KEY not configured"


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def _prompt_templates(request: Request) -> PromptTemplates:
    templates = getattr(request.app.state, "prompt_templates", None)
    if templates is None:
        templates = load_prompt_templates(get_settings())
        request.app.state.prompt_templates = templates
    return templates


@router.post("/analyze-problem", response_model=AnalyzeProblemResponse, response_model_exclude_none=True)
def analyze_problem(body: AnalyzeProblemRequest, request: Request):
    """OCR 失败、模型输出残缺都会降级处理；只有缺少图片或未配置密钥才直接报错。"""
    try:
        if not body.image_base64:
            return _error(400, "Missing image data")
        if not get_settings().gemini_api_key:
            return _error(500, NOT_CONFIGURED_MESSAGE)

        logger.info("[Analyze] 收到请求 mime=%s image_len=%d", body.mime_type, len(body.image_base64))
        result = analyze_problem_image(
            body.image_base64,
            body.mime_type or "image/jpeg",
            templates=_prompt_templates(request),
        )
        return AnalyzeProblemResponse(
            data=result.problem,
            ocr_mode=result.ocr_mode,
            ocr_element_count=result.ocr_element_count,
        )
    except ModelNotConfiguredError:
        return _error(500, NOT_CONFIGURED_MESSAGE)
    except Exception as e:
        logger.exception("[Analyze] 分析题目失败: %s", e)
        return _error(500, ANALYZE_ERROR_MESSAGE, str(e))


@router.post("/math-chat", response_model=MathChatResponse)
def math_chat(body: MathChatRequest):
    """会话状态（步骤、当前下标、历史、挫败感）全部由调用方每轮回传。"""
    try:
        if not body.message or not body.steps:
            return _error(400, "Missing required fields: message, steps")
        index = body.current_step_index
        if index is None or not 0 <= index < len(body.steps):
            return _error(400, "Invalid currentStepIndex")
        if not get_settings().gemini_api_key:
            return _error(500, NOT_CONFIGURED_MESSAGE)

        response = run_chat_turn(
            body.message,
            body.steps,
            index,
            conversation_history=body.conversation_history,
            should_reveal_answer=body.should_reveal_answer,
            frustration_level=body.frustration_level,
            problem_text=body.problem_text,
        )
        return MathChatResponse(data=response)
    except ModelNotConfiguredError:
        return _error(500, NOT_CONFIGURED_MESSAGE)
    except Exception as e:
        logger.exception("[Chat] 对话处理失败: %s", e)
        return _error(500, CHAT_ERROR_MESSAGE, str(e))

"""题目图片分析流水线：OCR → 选择模板 → 模型拆解步骤 → 坐标融合 → 规范化。"""
import logging
from typing import Callable

from config import get_settings

from .fusion import fuse_visual_anchors
from .normalizer import normalize_analyzed_problem
from .ocr import detect_text_anchors, strip_data_url_prefix
from .prompts import PromptTemplates, build_analysis_prompt
from .schemas import AnalysisResult, AnalyzedProblem, VisualMapItem
from .synthesizer import VisionInvoker, synthesize_steps

logger = logging.getLogger(__name__)

TextDetector = Callable[[str], list[VisualMapItem]]


def _detect_visual_map(image_base64: str, detect: TextDetector) -> list[VisualMapItem]:
    """OCR 失败不影响主流程，降级为坐标估算模式。"""
    try:
        logger.info("[Analyze] 尝试 OCR 识别…")
        return list(detect(image_base64))
    except Exception as e:
        logger.warning("[Analyze] OCR 失败，降级为纯模型模式: %s", e)
        return []


def analyze_problem_image(
    image_base64: str,
    mime_type: str = "image/jpeg",
    *,
    templates: PromptTemplates,
    detect: TextDetector | None = None,
    invoke: VisionInvoker | None = None,
) -> AnalysisResult:
    """
    单次题目分析。模型输出异常由恢复级联兜底，不会抛出解析错误；
    空图片抛出 ValueError，模型调用异常向上抛出便于接口层处理。
    """
    if not image_base64:
        raise ValueError("图片数据不能为空")
    settings = get_settings()

    visual_map: list[VisualMapItem] = []
    if settings.ocr_enabled:
        visual_map = _detect_visual_map(image_base64, detect or detect_text_anchors)

    mode, prompt = build_analysis_prompt(templates, visual_map)
    ocr_mode = mode == "ocr"
    logger.info("[Analyze] OCR 元素 %d 个，模式=%s", len(visual_map), mode)

    raw_problem = synthesize_steps(
        prompt,
        strip_data_url_prefix(image_base64),
        mime_type,
        invoke=invoke,
    )

    steps = raw_problem.get("steps")
    if ocr_mode and isinstance(steps, list):
        logger.info("[Analyze] 融合 OCR 坐标与模型结果…")
        raw_problem = {
            **raw_problem,
            "steps": fuse_visual_anchors(steps, visual_map, settings.max_anchors_per_step),
        }

    normalized = normalize_analyzed_problem(raw_problem, visual_map, settings.max_anchors_per_step)
    problem = AnalyzedProblem.model_validate(normalized)
    logger.info("[Analyze] 完成 steps=%d subject=%s", len(problem.steps), problem.subject)
    return AnalysisResult(problem=problem, ocr_mode=ocr_mode, ocr_element_count=len(visual_map))

"""OCR 坐标融合：把模型返回的 related_ids 映射回 Visual Map 中的真实坐标框。"""
import logging

from .schemas import VisualMapItem
from .visual_map import lookup_boxes_by_ids

logger = logging.getLogger(__name__)

MAX_ANCHORS_PER_STEP = 6


def fuse_visual_anchors(
    steps: list,
    visual_map: list[VisualMapItem],
    max_anchors: int = MAX_ANCHORS_PER_STEP,
) -> list:
    """
    related_ids 只取前 max_anchors 个再查表，按 id 顺序生成 visual_anchor。
    一个都查不到时保持原样，留给规范化阶段兜底。
    """
    fused = []
    for step in steps:
        if not isinstance(step, dict):
            fused.append(step)
            continue
        related_ids = step.get("related_ids")
        if isinstance(related_ids, list) and related_ids:
            limited_ids = related_ids[:max_anchors]
            boxes = lookup_boxes_by_ids(visual_map, limited_ids)
            if boxes:
                step = {**step, "visual_anchor": boxes}
            logger.info(
                "[Analyze] 步骤 %s: %d 个 id 映射到 %d 个坐标框",
                step.get("id"), len(limited_ids), len(boxes),
            )
        fused.append(step)
    return fused

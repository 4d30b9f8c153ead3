"""Visual Map 工具：序列化给模型的紧凑形式，以及按 id 反查 OCR 坐标框。"""
import json
from typing import Iterable

from .schemas import VisualMapItem


def format_visual_map_for_llm(items: Iterable[VisualMapItem]) -> str:
    """只保留 id 与 text，坐标框不发给模型以节省 token。"""
    return json.dumps(
        [{"id": item.id, "text": item.text} for item in items],
        ensure_ascii=False,
        separators=(",", ":"),
    )


def lookup_boxes_by_ids(items: Iterable[VisualMapItem], ids: Iterable) -> list[dict]:
    """按 ids 顺序返回 {x, y, w, h, label}；Visual Map 中不存在的 id 直接丢弃。"""
    by_id = {item.id: item for item in items}
    boxes = []
    for id_ in ids:
        item = by_id.get(id_) if isinstance(id_, str) else None
        if item is None:
            continue
        boxes.append({**item.box.model_dump(), "label": item.text})
    return boxes

"""OCR 适配：调用 Google Cloud Vision 文字检测，转换为 0~1000 归一化坐标的 Visual Map。"""
import base64
import logging
import math
import re
from functools import lru_cache

from .schemas import Box, VisualMapItem

logger = logging.getLogger(__name__)

# 坐标归一化后的刻度
COORD_SCALE = 1000
# 宽或高小于该值的元素视为噪点
MIN_BOX_SIZE = 5
# 图片尺寸缺失时的兜底值
DEFAULT_PAGE_SIZE = 1000

_DATA_URL_PREFIX = re.compile(r"^data:.*?;base64,")


def _scale(value: float, size: float) -> int:
    # 0.5 一律进位，不用 round 的银行家舍入
    return math.floor(value * COORD_SCALE / size + 0.5)


def strip_data_url_prefix(image_base64: str) -> str:
    """去掉 data:image/...;base64, 前缀。"""
    return _DATA_URL_PREFIX.sub("", image_base64 or "", count=1)


@lru_cache(maxsize=1)
def _get_client():
    try:
        from google.cloud import vision
    except ImportError as e:
        raise ImportError("请安装 google-cloud-vision: pip install google-cloud-vision") from e
    return vision.ImageAnnotatorClient()


def _page_size(full_text_annotation, annotations) -> tuple[int, int]:
    """优先取 full_text_annotation 的页面尺寸，否则用所有顶点的最大坐标（不小于 1000）。"""
    pages = getattr(full_text_annotation, "pages", None) or []
    if pages:
        return (pages[0].width or DEFAULT_PAGE_SIZE, pages[0].height or DEFAULT_PAGE_SIZE)
    width = height = DEFAULT_PAGE_SIZE
    for ann in annotations:
        for v in ann.bounding_poly.vertices:
            width = max(width, v.x or 0)
            height = max(height, v.y or 0)
    return width, height


def build_visual_map(annotations, page_width: int, page_height: int) -> list[VisualMapItem]:
    """
    将 Vision 的 text_annotations 转为 Visual Map。
    第 0 条是全文汇总，跳过；id 为 txt_<i>，i 是去掉汇总后的序号（被过滤的元素也占号）。
    """
    items: list[VisualMapItem] = []
    for index, ann in enumerate(list(annotations)[1:]):
        vertices = list(getattr(ann.bounding_poly, "vertices", None) or [])
        if len(vertices) < 4:
            continue
        text = (ann.description or "").strip()
        if not text:
            continue
        xs = [v.x or 0 for v in vertices]
        ys = [v.y or 0 for v in vertices]
        min_x, max_x = min(xs), max(xs)
        min_y, max_y = min(ys), max(ys)
        box = Box(
            x=_scale(min_x, page_width),
            y=_scale(min_y, page_height),
            w=_scale(max_x - min_x, page_width),
            h=_scale(max_y - min_y, page_height),
        )
        if box.w < MIN_BOX_SIZE or box.h < MIN_BOX_SIZE:
            continue
        items.append(VisualMapItem(id=f"txt_{index}", text=text, box=box))
    return items


def detect_text_anchors(image_base64: str) -> list[VisualMapItem]:
    """调用 Cloud Vision 识别图片文字并返回 Visual Map。API 出错时抛出，由调用方降级处理。"""
    client = _get_client()
    from google.cloud import vision

    content = base64.b64decode(strip_data_url_prefix(image_base64))
    response = client.text_detection(image=vision.Image(content=content))
    if response.error.message:
        raise RuntimeError(f"Cloud Vision 识别失败: {response.error.message}")

    annotations = list(response.text_annotations)
    if not annotations:
        logger.info("[OCR] 图片中未检测到文字")
        return []

    width, height = _page_size(response.full_text_annotation, annotations)
    logger.info("[OCR] 图片尺寸 %dx%d", width, height)
    items = build_visual_map(annotations, width, height)
    logger.info("[OCR] 生成 Visual Map 元素 %d 个", len(items))
    return items

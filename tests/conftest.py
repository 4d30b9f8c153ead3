"""测试公共配置：固定与测试相关的环境变量，避免受本地 .env 影响。"""
from types import SimpleNamespace

import pytest

from problem_analysis.schemas import Box, ProblemStep, VisualMapItem


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.setenv("OCR_ENABLED", "true")
    for name in ("OCR_PROMPT_PATH", "FALLBACK_PROMPT_PATH", "MAX_ANCHORS_PER_STEP"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def visual_map() -> list[VisualMapItem]:
    """10 个 OCR 元素：txt_0 ... txt_9，纵向排布。"""
    return [
        VisualMapItem(id=f"txt_{i}", text=f"元素{i}", box=Box(x=10 * i, y=20 * i, w=30, h=15))
        for i in range(10)
    ]


@pytest.fixture
def steps() -> list[ProblemStep]:
    return [
        ProblemStep(id=1, goal="找出已知条件", kc="审题", difficulty=2, probe="题目给了什么？", hints=["看第一句"]),
        ProblemStep(id=2, goal="证明 AB=CD", kc="全等三角形", difficulty=5, probe="哪两个三角形全等？", hints=["找公共边"]),
        ProblemStep(id=3, goal="求出 x", kc="方程", difficulty=4, probe="列出方程了吗？", hints=["移项"]),
    ]


def make_annotation(text: str, x0: int, y0: int, x1: int, y1: int):
    """构造与 Cloud Vision text_annotations 同形的对象。"""
    vertices = [
        SimpleNamespace(x=x0, y=y0),
        SimpleNamespace(x=x1, y=y0),
        SimpleNamespace(x=x1, y=y1),
        SimpleNamespace(x=x0, y=y1),
    ]
    return SimpleNamespace(description=text, bounding_poly=SimpleNamespace(vertices=vertices))


@pytest.fixture
def annotation():
    return make_annotation

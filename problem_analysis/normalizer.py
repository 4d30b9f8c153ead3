"""
题目结构规范化：无论模型输出多残缺，返回给前端的结构都能直接渲染。

所有字段的"合法判定 / 修正 / 默认值"写在一张规则表里逐项套用。
每条规则的合法判定都接受自己产出的默认值和修正结果，因此规范化是幂等的：
normalize(normalize(p)) == normalize(p)。
"""
import copy
import math
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import ValidationError

from .fusion import MAX_ANCHORS_PER_STEP
from .schemas import CalibrationBox, VisualMapItem
from .visual_map import lookup_boxes_by_ids

DEFAULT_DIFFICULTY = 5
DEFAULT_HINTS = ["试着思考一下", "回顾相关知识点", "可以画个图帮助理解"]
DEFAULT_PROBE = "你对这一步有什么想法？"

# 占位锚点：按步骤序号纵向排布
PLACEHOLDER_X = 100
PLACEHOLDER_Y0 = 150
PLACEHOLDER_Y_STEP = 120
PLACEHOLDER_W = 300
PLACEHOLDER_H = 80


def create_fallback_problem() -> dict:
    """模型输出完全无法解析时使用的通用两步脚手架。"""
    return {
        "problemText": "请描述你看到的题目内容",
        "subject": "待确定",
        "totalDifficulty": 5,
        "steps": [
            {
                "id": 1,
                "goal": "理解题目要求",
                "kc": "阅读理解",
                "difficulty": 2,
                "visual_anchor": [{"x": 100, "y": 100, "w": 300, "h": 100, "label": "题目"}],
                "probe": "这道题让你求什么？",
                "hints": ["关注题目的最后一句话", "找到「求」或「证明」后面的内容", "确定已知条件和未知量"],
                "board_content": "**第一步：理解题目**\n\n找出题目的关键词：\n- 「求」后面是什么？\n- 「已知」有哪些？",
            },
            {
                "id": 2,
                "goal": "提取关键信息",
                "kc": "信息提取",
                "difficulty": 3,
                "visual_anchor": [{"x": 100, "y": 300, "w": 300, "h": 100, "label": "已知条件"}],
                "probe": "题目给了哪些已知条件？",
                "hints": ["列出所有数字和符号", "关注「已知」「设」「若」等关键词", "画个简图整理信息"],
                "board_content": "**第二步：提取条件**\n\n已知条件列表：\n1. ...\n2. ...",
            },
        ],
    }


# ---------- 规则表 ----------

@dataclass
class RuleContext:
    raw: dict
    index: int = 0
    visual_map: list[VisualMapItem] = field(default_factory=list)
    max_anchors: int = MAX_ANCHORS_PER_STEP
    out: dict = field(default_factory=dict)


@dataclass(frozen=True)
class FieldRule:
    field: str
    is_valid: Callable[[Any], bool]
    # 为 None 表示字段可缺省：不合法时直接省略
    default: Callable[[RuleContext], Any] | None
    coerce: Callable[[Any, RuleContext], Any] = lambda value, ctx: value


def apply_rules(raw: dict, rules: list[FieldRule], ctx: RuleContext) -> dict:
    """按表顺序处理字段；后面的规则可以通过 ctx.out 读取前面已规范化的值。"""
    ctx.out = {}
    for rule in rules:
        value = raw.get(rule.field)
        if rule.is_valid(value):
            ctx.out[rule.field] = rule.coerce(value, ctx)
        elif rule.default is not None:
            ctx.out[rule.field] = rule.default(ctx)
    return ctx.out


def _is_text(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_truthy_number(value) -> bool:
    return _is_number(value) and value != 0


def _clamp_difficulty(value, ctx: RuleContext) -> int:
    return min(10, max(1, int(round(value))))


def _is_anchor(value) -> bool:
    return isinstance(value, dict) and all(_is_number(value.get(k)) for k in ("x", "y", "w", "h"))


def _has_anchor(value) -> bool:
    return isinstance(value, list) and any(_is_anchor(a) for a in value)


def _clean_anchors(value, ctx: RuleContext) -> list[dict]:
    anchors = []
    for a in value:
        if not _is_anchor(a):
            continue
        label = a.get("label")
        anchors.append({
            "x": a["x"], "y": a["y"], "w": a["w"], "h": a["h"],
            "label": label if isinstance(label, str) else "",
        })
    return anchors[: ctx.max_anchors]


def _derive_anchors(ctx: RuleContext) -> list[dict]:
    """没有可用锚点时：先用 related_ids 查表，仍为空则按步骤序号生成占位框。"""
    related_ids = ctx.out.get("related_ids") or []
    if related_ids:
        boxes = lookup_boxes_by_ids(ctx.visual_map, related_ids[: ctx.max_anchors])
        if boxes:
            return boxes
    raw_kc = ctx.raw.get("kc")
    return [{
        "x": PLACEHOLDER_X,
        "y": PLACEHOLDER_Y0 + ctx.index * PLACEHOLDER_Y_STEP,
        "w": PLACEHOLDER_W,
        "h": PLACEHOLDER_H,
        "label": raw_kc if _is_text(raw_kc) else f"步骤{ctx.index + 1}",
    }]


def _has_text_item(value) -> bool:
    return isinstance(value, list) and any(_is_text(v) for v in value)


def _clean_text_items(value, ctx: RuleContext) -> list[str]:
    return [v for v in value if _is_text(v)]


def _board_content(ctx: RuleContext) -> str:
    return f"**{ctx.out['goal']}**\n\n{ctx.out['kc']}：..."


STEP_RULES: list[FieldRule] = [
    FieldRule("id", _is_positive_int, lambda ctx: ctx.index + 1),
    FieldRule("goal", _is_text, lambda ctx: f"步骤 {ctx.index + 1}"),
    FieldRule("kc", _is_text, lambda ctx: "未分类"),
    FieldRule("difficulty", _is_truthy_number, lambda ctx: DEFAULT_DIFFICULTY, _clamp_difficulty),
    FieldRule("related_ids", _has_text_item, None, _clean_text_items),
    FieldRule("visual_anchor", _has_anchor, _derive_anchors, _clean_anchors),
    FieldRule("probe", _is_text, lambda ctx: DEFAULT_PROBE),
    FieldRule("hints", _has_text_item, lambda ctx: list(DEFAULT_HINTS), _clean_text_items),
    FieldRule("board_content", _is_text, _board_content),
]


def _is_calibration_box(value) -> bool:
    if not isinstance(value, dict):
        return False
    try:
        CalibrationBox.model_validate(value)
    except ValidationError:
        return False
    return True


def _is_step_list(value) -> bool:
    return isinstance(value, list) and len(value) > 0


PROBLEM_RULES: list[FieldRule] = [
    FieldRule("problemText", _is_text, lambda ctx: "题目内容待确认"),
    FieldRule("subject", _is_text, lambda ctx: "数学"),
    FieldRule("totalDifficulty", _is_truthy_number, lambda ctx: DEFAULT_DIFFICULTY, _clamp_difficulty),
    FieldRule(
        "steps",
        _is_step_list,
        lambda ctx: copy.deepcopy(create_fallback_problem()["steps"]),
        lambda value, ctx: list(value),
    ),
    FieldRule(
        "calibration_box",
        _is_calibration_box,
        None,
        lambda value, ctx: CalibrationBox.model_validate(value).model_dump(),
    ),
]


def normalize_step(
    step,
    index: int,
    visual_map: list[VisualMapItem] | None = None,
    max_anchors: int = MAX_ANCHORS_PER_STEP,
) -> dict:
    raw = step if isinstance(step, dict) else {}
    ctx = RuleContext(raw=raw, index=index, visual_map=visual_map or [], max_anchors=max_anchors)
    return apply_rules(raw, STEP_RULES, ctx)


def normalize_analyzed_problem(
    problem,
    visual_map: list[VisualMapItem] | None = None,
    max_anchors: int = MAX_ANCHORS_PER_STEP,
) -> dict:
    """补齐缺失字段、钳制数值范围，返回可直接校验为 AnalyzedProblem 的 dict。"""
    raw = problem if isinstance(problem, dict) else {}
    out = apply_rules(raw, PROBLEM_RULES, RuleContext(raw=raw))
    out["steps"] = [
        normalize_step(step, index, visual_map, max_anchors)
        for index, step in enumerate(out["steps"])
    ]
    return out

"""题目规范化单测：默认值、数值钳制、占位锚点与幂等性。"""
import copy

import pytest

from problem_analysis.normalizer import (
    DEFAULT_HINTS,
    create_fallback_problem,
    normalize_analyzed_problem,
)
from problem_analysis.schemas import AnalyzedProblem


def _assert_renderable(problem: dict) -> None:
    for step in problem["steps"]:
        assert 1 <= step["difficulty"] <= 10
        assert 1 <= len(step["visual_anchor"]) <= 6
        assert len(step["hints"]) >= 1
        assert step["board_content"]
    AnalyzedProblem.model_validate(problem)


def test_empty_problem_gets_fallback_steps():
    out = normalize_analyzed_problem({})
    assert out["problemText"] == "题目内容待确认"
    assert out["subject"] == "数学"
    assert out["totalDifficulty"] == 5
    assert [s["goal"] for s in out["steps"]] == ["理解题目要求", "提取关键信息"]
    _assert_renderable(out)


def test_non_dict_input_is_treated_as_empty():
    assert normalize_analyzed_problem(None) == normalize_analyzed_problem({})


@pytest.mark.parametrize(
    "raw, expected",
    [(15, 10), (-3, 1), (0, 5), (None, 5), ("hard", 5), (3.6, 4), (True, 5), (7, 7)],
)
def test_difficulty_clamped(raw, expected):
    out = normalize_analyzed_problem({"totalDifficulty": raw, "steps": [{"difficulty": raw}]})
    assert out["steps"][0]["difficulty"] == expected
    assert out["totalDifficulty"] == expected


def test_step_ids_keep_truthy_values_and_fill_by_position():
    out = normalize_analyzed_problem({"steps": [{"id": 7}, {}, {"id": 0}, {"id": "x"}]})
    assert [s["id"] for s in out["steps"]] == [7, 2, 3, 4]


def test_step_text_defaults():
    step = normalize_analyzed_problem({"steps": [{}, {}]})["steps"][1]
    assert step["goal"] == "步骤 2"
    assert step["kc"] == "未分类"
    assert step["probe"] == "你对这一步有什么想法？"
    assert step["hints"] == DEFAULT_HINTS
    assert step["board_content"] == "**步骤 2**\n\n未分类：..."


def test_placeholder_anchor_positioned_by_index():
    out = normalize_analyzed_problem({"steps": [{"kc": "勾股定理"}, {}, {}]})
    anchors = [s["visual_anchor"] for s in out["steps"]]
    assert anchors[0] == [{"x": 100, "y": 150, "w": 300, "h": 80, "label": "勾股定理"}]
    assert anchors[2] == [{"x": 100, "y": 390, "w": 300, "h": 80, "label": "步骤3"}]


def test_related_ids_resolved_when_no_anchor(visual_map):
    out = normalize_analyzed_problem(
        {"steps": [{"related_ids": [f"txt_{i}" for i in range(9)]}]}, visual_map
    )
    assert [a["label"] for a in out["steps"][0]["visual_anchor"]] == [f"元素{i}" for i in range(6)]


def test_unresolved_related_ids_fall_through_to_placeholder(visual_map):
    """查不到的 id 与没有 id 一样处理，使用占位框。"""
    out = normalize_analyzed_problem({"steps": [{"kc": "相似", "related_ids": ["ghost"]}]}, visual_map)
    assert out["steps"][0]["visual_anchor"][0]["label"] == "相似"
    assert out["steps"][0]["visual_anchor"][0]["y"] == 150


def test_existing_anchors_are_cleaned_and_capped():
    anchors = [{"x": i, "y": i, "w": 10, "h": 10} for i in range(8)] + [{"x": "bad"}]
    out = normalize_analyzed_problem({"steps": [{"visual_anchor": anchors}]})
    cleaned = out["steps"][0]["visual_anchor"]
    assert len(cleaned) == 6
    assert cleaned[0] == {"x": 0, "y": 0, "w": 10, "h": 10, "label": ""}


def test_existing_values_are_kept():
    step = {
        "id": 1,
        "goal": "证明全等",
        "kc": "SAS",
        "difficulty": 4,
        "visual_anchor": [{"x": 1, "y": 2, "w": 3, "h": 4, "label": "AB"}],
        "probe": "哪两条边相等？",
        "hints": ["看 AB", "看 CD"],
        "board_content": "$AB = CD$",
    }
    out = normalize_analyzed_problem({"problemText": "题", "subject": "几何", "totalDifficulty": 6, "steps": [step]})
    assert out["steps"][0] == step
    assert out["subject"] == "几何"


def test_calibration_box_kept_only_when_valid():
    box = {"x": 0, "y": 0, "w": 100, "h": 100}
    valid = normalize_analyzed_problem({"calibration_box": {"figure_area": box, "text_area": box}})
    assert valid["calibration_box"]["figure_area"] == box
    assert "calibration_box" not in normalize_analyzed_problem({"calibration_box": {"figure_area": 1}})


IDEMPOTENCE_CASES = [
    {},
    None,
    {"steps": []},
    {"steps": "nope", "totalDifficulty": 99},
    {"steps": [{}, "junk", {"difficulty": 99, "related_ids": ["txt_0", "zzz", 3], "hints": []}]},
    {"steps": [{"visual_anchor": [{"x": 1, "y": 1, "w": 1, "h": 1}] * 8, "hints": ["", "h"]}]},
    create_fallback_problem(),
]


@pytest.mark.parametrize("raw", IDEMPOTENCE_CASES)
def test_normalize_is_idempotent(raw, visual_map):
    once = normalize_analyzed_problem(copy.deepcopy(raw), visual_map)
    twice = normalize_analyzed_problem(copy.deepcopy(once), visual_map)
    assert once == twice
    _assert_renderable(once)


def test_normalize_does_not_mutate_input():
    raw = {"steps": [{"goal": "g"}]}
    normalize_analyzed_problem(raw)
    assert raw == {"steps": [{"goal": "g"}]}

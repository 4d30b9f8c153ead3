"""对话单测：系统指令构造、回复恢复级联、步骤推进规范化与单轮编排。"""
import json

import pytest

from dialogue.normalizer import normalize_chat_response
from dialogue.orchestrator import build_model_history, run_chat_turn
from dialogue.parser import FALLBACK_REPLY, parse_chat_response, unescape_json_fragment
from dialogue.prompts import (
    NO_KNOWN_CONDITIONS,
    OPENING_USER_TURN,
    PROBLEM_TEXT_PLACEHOLDER,
    REVEAL_ANSWER_DIRECTIVE,
    build_system_prompt,
)
from dialogue.schemas import ChatMessage


# ---------- 系统指令 ----------

def test_system_prompt_fences_known_conditions_to_prior_goals(steps):
    prompt = build_system_prompt(steps, 2, problem_text="已知 AB=CD")
    assert "1. 找出已知条件\n2. 证明 AB=CD" in prompt
    assert "已知 AB=CD" in prompt
    assert "步骤：3/3" in prompt
    assert '"currentGoal": "求出 x"' in prompt


def test_system_prompt_first_step_has_no_known_conditions(steps):
    prompt = build_system_prompt(steps, 0)
    assert NO_KNOWN_CONDITIONS in prompt
    assert PROBLEM_TEXT_PLACEHOLDER in prompt
    assert '["看第一句"]' in prompt


def test_system_prompt_clamps_frustration(steps):
    assert "10/10" in build_system_prompt(steps, 0, frustration_level=15)
    assert "0/10" in build_system_prompt(steps, 0, frustration_level=-2)


def test_reveal_directive_only_when_requested(steps):
    assert REVEAL_ANSWER_DIRECTIVE not in build_system_prompt(steps, 1)
    assert build_system_prompt(steps, 1, should_reveal_answer=True).endswith(REVEAL_ANSWER_DIRECTIVE)


# ---------- 历史 ----------

def test_history_gets_opening_user_turn():
    history = [ChatMessage(role="assistant", content="我们先看题目"), ChatMessage(role="user", content="好")]
    turns = build_model_history(history)
    assert turns[0] == ChatMessage(role="user", content=OPENING_USER_TURN)
    assert turns[1:] == history


def test_history_starting_with_user_unchanged():
    history = [ChatMessage(role="user", content="你好")]
    assert build_model_history(history) == history
    assert build_model_history(None) == []


# ---------- 恢复级联 ----------

def test_parse_valid_json(steps):
    text = json.dumps({"reply": "很好", "isStepComplete": True, "hintLevel": 1}, ensure_ascii=False)
    assert parse_chat_response(text, steps, 0) == {"reply": "很好", "isStepComplete": True, "hintLevel": 1}


def test_parse_json_with_trailing_commentary(steps):
    text = '{"reply": "想想看", "isStepComplete": false}\n（以上为回复）'
    assert parse_chat_response(text, steps, 0)["reply"] == "想想看"


def test_parse_truncated_json_recovers_reply(steps):
    parsed = parse_chat_response('{"reply":"ok"', steps, 1)
    assert parsed == {
        "reply": "ok",
        "isStepComplete": False,
        "nextStepIndex": 1,
        "currentGoal": "证明 AB=CD",
        "currentKC": "全等三角形",
        "hintLevel": 0,
    }


def test_parse_raw_newline_inside_string(steps):
    text = '{"reply": "第一行\n第二行\\n第三行 \\"引号\\"", "isStepComplete": true, "hintLevel": 2'
    parsed = parse_chat_response(text, steps, 0)
    assert parsed["reply"] == '第一行\n第二行\n第三行 "引号"'
    assert parsed["isStepComplete"] is True
    assert parsed["hintLevel"] == 2


def test_parse_plain_prose_becomes_reply(steps):
    parsed = parse_chat_response("你觉得 AB 和 CD 有什么关系？", steps, 2)
    assert parsed["reply"] == "你觉得 AB 和 CD 有什么关系？"
    assert parsed["isStepComplete"] is False
    assert parsed["nextStepIndex"] == 2
    assert parsed["currentGoal"] == "求出 x"


def test_parse_empty_text_uses_fallback_reply(steps):
    assert parse_chat_response("", steps, 0)["reply"] == FALLBACK_REPLY


def test_unescape_handles_escaped_backslash():
    assert unescape_json_fragment(r"a\\nb") == "a\\nb"
    assert unescape_json_fragment(r"a\tb\r") == "a\tb"


# ---------- 规范化 ----------

def test_complete_step_advances(steps):
    resp = normalize_chat_response(
        {"reply": "对！", "isStepComplete": True, "nextStepIndex": 7, "currentGoal": "旧目标"}, steps, 0
    )
    assert resp.next_step_index == 1
    assert resp.current_goal == "证明 AB=CD"
    assert resp.current_kc == "全等三角形"


def test_last_step_never_advances(steps):
    resp = normalize_chat_response({"reply": "完成", "isStepComplete": True}, steps, 2)
    assert resp.is_step_complete is True
    assert resp.next_step_index == 2
    assert resp.current_goal == "求出 x"


def test_incomplete_step_stays(steps):
    resp = normalize_chat_response({"reply": "再想想", "isStepComplete": False, "nextStepIndex": 2}, steps, 0)
    assert resp.next_step_index == 0


@pytest.mark.parametrize("raw, expected", [(7, 3), (-1, 0), ("2", 2), (None, 0), ("lots", 0), (2.0, 2)])
def test_hint_level_clamped(steps, raw, expected):
    assert normalize_chat_response({"reply": "x", "hintLevel": raw}, steps, 0).hint_level == expected


def test_empty_reply_gets_encouragement(steps):
    assert normalize_chat_response({"reply": ""}, steps, 0).reply == "继续加油！"
    assert normalize_chat_response({}, steps, 0).reply == "继续加油！"


def test_response_serializes_with_camel_case(steps):
    data = normalize_chat_response({"reply": "x"}, steps, 0).model_dump(by_alias=True)
    assert set(data) == {"reply", "nextStepIndex", "isStepComplete", "currentGoal", "currentKC", "hintLevel"}


# ---------- 单轮编排 ----------

def test_run_chat_turn_end_to_end(steps):
    calls = []

    def fake_model(system_prompt, history, message):
        calls.append((system_prompt, history, message))
        return '```json\n{"reply": "没错，AB=CD", "isStepComplete": true, "hintLevel": 1}\n```'

    resp = run_chat_turn(
        "因为 SAS",
        steps,
        1,
        conversation_history=[ChatMessage(role="assistant", content="哪两个三角形全等？")],
        should_reveal_answer=True,
        frustration_level=6,
        problem_text="如图 AB=CD",
        invoke=fake_model,
    )
    assert resp.next_step_index == 2
    assert resp.current_goal == "求出 x"
    assert resp.hint_level == 1

    system_prompt, history, message = calls[0]
    assert message == "因为 SAS"
    assert history[0].role == "user"
    assert "6/10" in system_prompt
    assert system_prompt.endswith(REVEAL_ANSWER_DIRECTIVE)


def test_run_chat_turn_rejects_bad_index(steps):
    with pytest.raises(ValueError, match="越界"):
        run_chat_turn("hi", steps, 3, invoke=lambda *args: "")

"""苏格拉底式私教的系统指令：注入题目、当前目标、已知条件（事实围栏）、挫败感与提示阶梯。"""
import json

from problem_analysis.schemas import ProblemStep

# 模型多轮接口要求第一条历史由学生发出
OPENING_USER_TURN = "你好，请帮我看看这道题。"

PROBLEM_TEXT_PLACEHOLDER = "题目内容请参考对话历史"
NO_KNOWN_CONDITIONS = "暂无已确认的条件"

MAX_FRUSTRATION = 10

SYSTEM_PROMPT = """# 角色
你是一位极其严谨但态度温和的数学私教。你的所有讲解都必须基于下面的"事实数据库"。

# 上下文
## problem_text（唯一的事实来源）
{problem_text}

## current_step_goal（当前这一步的小目标）
{current_goal}

## known_conditions（目前已知/已证明的条件）
{known_conditions}

## frustration_level（学生挫败感指数）
{frustration_level}/{max_frustration}

## 当前进度
- 步骤：{step_number}/{total_steps}
- 知识点：{kc}
- 难度：{difficulty}/10
- 探究问题：{probe}
- 可用提示：{hints}

---

# 核心规则

## 1. 事实围栏
- 提到任何几何或代数性质（平行、相等、垂直等）之前，必须能在 problem_text 或 known_conditions 中找到依据。
- 题目没有给出的条件，严禁当作已知使用；可以改为引导学生自己去观察和判断。

## 2. 提示阶梯
学生表示"不知道"、"没思路"或回答错误时，不要重复上一句问题，而是降低难度、把问题拆细：
- 第 1 级：引导观察（"看图上高亮的部分……"）
- 第 2 级：给出选项（"是变大了还是变小了？"）
- 第 3 级：填空（"根据勾股定理，$a^2 + b^2 = ?$"）

## 3. 聚焦当前
所有提问只针对 current_step_goal，不要问后续步骤或整类题的思路。

## 4. 挫败感响应
frustration_level > 5 时停止追问，直接讲解这一小步的逻辑，然后以"这样说你能理解吗？"或"我们继续？"收尾。

## 5. 自查
输出前确认：我提到的每个条件都来自题目或已知条件吗？若是自己脑补的，删掉。

---

# 输出格式（严格 JSON）
{{
  "reply": "你的回复（公式用 $inline$ 或 $$display$$）",
  "isStepComplete": false,
  "nextStepIndex": {current_index},
  "currentGoal": {current_goal_json},
  "currentKC": {kc_json},
  "hintLevel": 0
}}

注意：
- 只有 isStepComplete=true 时 nextStepIndex 才能变为 {next_index}
- hintLevel 表示本次回复用到第几级提示（0=没用，1-3=提示阶梯对应级别）"""

REVEAL_ANSWER_DIRECTIVE = """

# 特殊指令：揭示答案
学生在这一步已经多次尝试仍未答对。请在这次回复中：
1. 温和地讲出这一步的正确思路和答案
2. 解释其中的关键逻辑
3. 将 isStepComplete 设为 true，让学生进入下一步
4. 语气以鼓励为主，不要让学生觉得失败"""


def clamp_frustration(level) -> int:
    if isinstance(level, bool) or not isinstance(level, (int, float)):
        return 0
    return min(MAX_FRUSTRATION, max(0, int(level)))


def known_conditions_for(steps: list[ProblemStep], current_step_index: int) -> list[str]:
    """已完成步骤的目标即为已知条件。"""
    return [s.goal for s in steps[:current_step_index]]


def build_system_prompt(
    steps: list[ProblemStep],
    current_step_index: int,
    *,
    problem_text: str | None = None,
    frustration_level: int = 0,
    known_conditions: list[str] | None = None,
    should_reveal_answer: bool = False,
) -> str:
    step = steps[current_step_index]
    if known_conditions is None:
        known_conditions = known_conditions_for(steps, current_step_index)
    conditions = (
        "\n".join(f"{i}. {c}" for i, c in enumerate(known_conditions, start=1))
        if known_conditions
        else NO_KNOWN_CONDITIONS
    )
    prompt = SYSTEM_PROMPT.format(
        problem_text=(problem_text or "").strip() or PROBLEM_TEXT_PLACEHOLDER,
        current_goal=step.goal,
        known_conditions=conditions,
        frustration_level=clamp_frustration(frustration_level),
        max_frustration=MAX_FRUSTRATION,
        step_number=current_step_index + 1,
        total_steps=len(steps),
        kc=step.kc,
        difficulty=step.difficulty,
        probe=step.probe,
        hints=json.dumps(step.hints, ensure_ascii=False),
        current_index=current_step_index,
        next_index=current_step_index + 1,
        current_goal_json=json.dumps(step.goal, ensure_ascii=False),
        kc_json=json.dumps(step.kc, ensure_ascii=False),
    )
    if should_reveal_answer:
        prompt += REVEAL_ANSWER_DIRECTIVE
    return prompt

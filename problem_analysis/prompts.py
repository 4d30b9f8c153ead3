"""题目拆解提示词：OCR 辅助模板与坐标估算兜底模板，以及按 OCR 元素数量选择模板。"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from config import Settings

from .schemas import VisualMapItem
from .visual_map import format_visual_map_for_llm

logger = logging.getLogger(__name__)

PromptMode = Literal["ocr", "fallback"]

VISUAL_MAP_PLACEHOLDER = "{{VISUAL_MAP}}"

OCR_ASSISTED_PROMPT = """# 角色
你是一位资深数学老师，擅长把一道题拆成若干个小步骤，并像在黑板上板书一样写出清晰的推导过程。

# 已知信息
图片中的文字已经过 OCR 识别，每个文字元素都有唯一 id。你不需要估算坐标，只需要从下面的 Visual Map 中挑选最关键的元素。

# Visual Map
```json
{{VISUAL_MAP}}
```

# 任务
1. 分析题目逻辑，拆解为 3-5 个步骤
2. 每个步骤从 Visual Map 中选出 2-3 个最关键的元素，把 id 放进 related_ids
3. 每个步骤写出 board_content（板书内容）

# 限制
- related_ids 必须是 Visual Map 中存在的 id，每个步骤绝对不要超过 6 个
- 优先选择关键数值（如 120°）、重要条件（如 BE=BC）、几何标签（如 A、B、C）
- 不要选择普通文字、标点符号或重复内容

# board_content 要求
- 简洁、逻辑清晰，像数学老师的板书
- 公式用 LaTeX 包裹，如 $\\triangle ABC$、$\\angle BAC = 60°$
- 用 \\n 表示换行，重点结论可用 \\boxed{} 标出
- related_ids 告诉学生"看图上的哪里"，board_content 告诉学生"脑子里怎么推"

# 输出格式（只输出 JSON）
{
  "problemText": "完整题目描述",
  "subject": "知识点分类",
  "totalDifficulty": 6,
  "steps": [
    {
      "id": 1,
      "goal": "步骤目标",
      "kc": "涉及知识点",
      "difficulty": 3,
      "related_ids": ["txt_5", "txt_12"],
      "board_content": "由于 $\\\\triangle ABC$ 中 $\\\\angle BAC = 120°$\\\\n...",
      "probe": "启发式提问",
      "hints": ["提示1", "提示2", "提示3"]
    }
  ]
}"""

FALLBACK_PROMPT = """# 角色
你是一位同时精通图像空间定位与数学教学的老师。

# 任务
分析图片中的题目，把解题思路拆解为 3-5 个步骤。请在 0~1000 的归一化坐标系中估算每个步骤需要学生关注的区域（visual_anchor），并为每个步骤写出板书内容（board_content）。

# board_content 要求
- 公式用 LaTeX 包裹，如 $\\triangle ABC$
- 用 \\n 表示换行
- 像老师在黑板上书写一样简洁清晰

# 输出格式（只输出 JSON）
{
  "problemText": "完整题目描述",
  "subject": "知识点分类",
  "totalDifficulty": 6,
  "steps": [
    {
      "id": 1,
      "goal": "步骤目标",
      "kc": "涉及知识点",
      "difficulty": 3,
      "visual_anchor": [
        { "x": 100, "y": 80, "w": 200, "h": 30, "label": "关键条件" }
      ],
      "board_content": "由于 $\\\\triangle ABC$ 是等边三角形\\\\n$\\\\therefore AB = BC = AC$",
      "probe": "启发式提问",
      "hints": ["提示1", "提示2", "提示3"]
    }
  ]
}"""


@dataclass(frozen=True)
class PromptTemplates:
    ocr_assisted: str = OCR_ASSISTED_PROMPT
    fallback: str = FALLBACK_PROMPT


def _read_override(path: str | None, default: str, name: str) -> str:
    if not path:
        return default
    text = Path(path).read_text(encoding="utf-8")
    logger.info("[Prompt] 使用自定义模板 %s=%s len=%d", name, path, len(text))
    return text


def load_prompt_templates(settings: Settings) -> PromptTemplates:
    """启动时加载一次；配置了模板文件则以文件内容替换内置模板。"""
    templates = PromptTemplates(
        ocr_assisted=_read_override(settings.ocr_prompt_path, OCR_ASSISTED_PROMPT, "ocr_prompt_path"),
        fallback=_read_override(settings.fallback_prompt_path, FALLBACK_PROMPT, "fallback_prompt_path"),
    )
    if VISUAL_MAP_PLACEHOLDER not in templates.ocr_assisted:
        logger.warning("[Prompt] OCR 模板中缺少 %s 占位符，Visual Map 将不会注入", VISUAL_MAP_PLACEHOLDER)
    return templates


def select_prompt_mode(ocr_element_count: int) -> PromptMode:
    """有 OCR 元素才能做坐标对齐，否则让模型自己估算坐标。"""
    return "ocr" if ocr_element_count > 0 else "fallback"


def build_analysis_prompt(
    templates: PromptTemplates,
    visual_map: list[VisualMapItem],
) -> tuple[PromptMode, str]:
    mode = select_prompt_mode(len(visual_map))
    if mode == "ocr":
        prompt = templates.ocr_assisted.replace(
            VISUAL_MAP_PLACEHOLDER, format_visual_map_for_llm(visual_map)
        )
    else:
        prompt = templates.fallback
    return mode, prompt

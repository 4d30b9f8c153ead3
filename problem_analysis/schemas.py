"""题目拆解阶段的数据模型：OCR 元素、高亮锚点、步骤与整题结构。字段别名与前端 JSON 保持一致。"""
from pydantic import BaseModel, ConfigDict, Field


class Box(BaseModel):
    """0~1000 归一化坐标系下的矩形。"""
    x: int | float
    y: int | float
    w: int | float
    h: int | float


class VisualMapItem(BaseModel):
    """OCR 识别出的单个文字元素，id 在同一张图内唯一。"""
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    box: Box


class VisualAnchor(BaseModel):
    """渲染给学生的高亮区域。"""
    x: int | float
    y: int | float
    w: int | float
    h: int | float
    label: str = ""


class ProblemStep(BaseModel):
    id: int = Field(1, description="从 1 开始的步骤序号")
    goal: str = Field("", description="步骤目标")
    kc: str = Field("", description="涉及知识点（knowledge component）")
    difficulty: int = Field(5, ge=1, le=10)
    visual_anchor: list[VisualAnchor] | None = Field(None, max_length=6)
    related_ids: list[str] | None = Field(None, description="模型引用的 OCR 元素 id")
    probe: str = Field("", description="启发式提问")
    hints: list[str] = Field(default_factory=list, description="提示阶梯")
    board_content: str | None = Field(None, description="板书推导，支持 LaTeX")


class CalibrationBox(BaseModel):
    figure_area: Box
    text_area: Box


class AnalyzedProblem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    problem_text: str = Field(..., alias="problemText")
    subject: str
    total_difficulty: int = Field(..., alias="totalDifficulty", ge=1, le=10)
    steps: list[ProblemStep] = Field(..., min_length=1)
    calibration_box: CalibrationBox | None = None


class AnalysisResult(BaseModel):
    """一次图片分析的产出：规范化后的题目 + OCR 模式信息。"""
    problem: AnalyzedProblem
    ocr_mode: bool
    ocr_element_count: int

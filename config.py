"""从环境变量或 .env 加载配置（Gemini 模型、OCR、提示词模板、锚点上限等）。"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------- 生成模型（Gemini）配置 ----------
    gemini_api_key: str = ""
    """Gemini API Key，必填。为空时两个接口均返回 500。"""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    """Gemini 的 OpenAI 兼容端点，可改为代理或中转地址。"""
    gemini_model: str = "gemini-2.5-flash"
    """模型名称，题目拆解与苏格拉底对话共用。"""
    llm_temperature: float = 0.2
    """生成温度，0~2，越低越稳定。"""
    llm_max_tokens: int | None = None
    """单次请求最大 token 数，不设则用模型默认。"""
    llm_request_timeout: float = 120.0
    """单次请求超时秒数。"""

    # ---------- OCR（Google Cloud Vision）配置 ----------
    ocr_enabled: bool = True
    """关闭后不调用 OCR，直接走坐标估算模式。"""

    # 每个步骤最多渲染的高亮框数量
    max_anchors_per_step: int = Field(6, ge=1, le=6)

    # ---------- 提示词模板 ----------
    # 指定文件时在启动时读取并替换内置模板
    ocr_prompt_path: str | None = None
    fallback_prompt_path: str | None = None

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()

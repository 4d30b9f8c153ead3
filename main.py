"""FastAPI 应用入口：挂载题目分析与苏格拉底对话 API。"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.models import ErrorResponse
from api.routes import router
from config import get_settings
from problem_analysis.prompts import load_prompt_templates

# 配置日志：便于查看 OCR 降级、恢复级联命中情况
logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
# 降低 uvicorn 访问日志噪音，业务日志仍为 INFO
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

app = FastAPI(title="苏格拉底数学私教", version="0.1.0")


@app.on_event("startup")
def startup():
    # 提示词模板只在启动时加载一次
    app.state.prompt_templates = load_prompt_templates(get_settings())


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    # 请求体无法解析时也按统一的 {error, details} 结构返回 400
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    body = ErrorResponse(error="Invalid request body", details=details or None).model_dump(exclude_none=True)
    return JSONResponse(status_code=400, content=body)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(router, prefix="/api", tags=["tutor"])

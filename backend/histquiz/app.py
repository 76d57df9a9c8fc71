# backend/histquiz/app.py

import json, logging
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from dotenv import load_dotenv

from histquiz.core.config import load_settings
from histquiz.core.endpoint import GENERATE_PATH, EndpointResponse, GenerationEndpoint
from histquiz.core.errors import MESSAGE_BY_KIND, ErrorKind, InvalidRequestError
from histquiz.core.gemini_qg import init_client
from histquiz.core.prompt import EmptyThemeError, build_prompt
from histquiz.core.renderer import (
    PayloadValidationError,
    QuizView,
    parse_quiz_payload,
    render_error_html,
    render_page,
)
from histquiz.core.schemas import ErrorResponse

# ------------------------------------------------------------
# Setup
# ------------------------------------------------------------
load_dotenv()
logging.basicConfig(level=load_settings().log_level)
logger = logging.getLogger("quiz")

app = FastAPI(title="World History Quiz API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware to log requests
class LogRequestMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        size = request.headers.get("content-length", "0")
        logger.info(f"Incoming {request.method} {request.url.path} body_bytes={size}")
        return await call_next(request)

app.add_middleware(LogRequestMiddleware)

# Every method is routed to the handler so it can answer 405 itself.
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# ------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------
def get_endpoint(request: Request) -> GenerationEndpoint:
    """Build the upstream client on first use and reuse it for the process lifetime."""
    endpoint = getattr(request.app.state, "endpoint", None)
    if endpoint is None:
        endpoint = GenerationEndpoint(init_client(load_settings()))
        request.app.state.endpoint = endpoint
    return endpoint

# ------------------------------------------------------------
# Exception handlers
# ------------------------------------------------------------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Methods outside ALL_METHODS never reach the route; answer them the same way.
    if exc.status_code == 405 and request.url.path == GENERATE_PATH:
        result = EndpointResponse.from_error(InvalidRequestError(ErrorKind.METHOD_NOT_ALLOWED))
        return Response(content=result.body, status_code=result.status, headers=result.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"error": MESSAGE_BY_KIND[ErrorKind.MALFORMED_BODY]},
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": MESSAGE_BY_KIND[ErrorKind.UNKNOWN]},
    )

# ------------------------------------------------------------
# Routes
# ------------------------------------------------------------
@app.api_route(
    GENERATE_PATH,
    methods=ALL_METHODS,
    responses={400: {"model": ErrorResponse}, 405: {"model": ErrorResponse},
               429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def generate_question(request: Request, endpoint: GenerationEndpoint = Depends(get_endpoint)):
    result = await endpoint.handle(request.method, request.body)
    return Response(content=result.body, status_code=result.status, headers=result.headers)

@app.get("/", response_class=HTMLResponse)
def index():
    return render_page()

@app.get("/quiz", response_class=HTMLResponse)
async def quiz_page(
    theme: str = "",
    show_answers: bool = False,
    endpoint: GenerationEndpoint = Depends(get_endpoint),
):
    def page(content: str, status: int = 200) -> HTMLResponse:
        return HTMLResponse(render_page(content, theme, show_answers), status_code=status)

    try:
        prompt = build_prompt(theme)
    except EmptyThemeError as e:
        return page(render_error_html(str(e)), 400)

    body = json.dumps({"prompt": prompt}, ensure_ascii=False).encode("utf-8")

    async def read_body() -> bytes:
        return body

    result = await endpoint.handle("POST", read_body)
    if result.status != 200:
        return page(render_error_html(result.json()["error"]), result.status)

    try:
        payload = parse_quiz_payload(result.body)
    except PayloadValidationError as e:
        logger.warning(f"Generated quiz rejected: {e}")
        return page(render_error_html(str(e)), 502)

    return page(QuizView(payload, show_answers=show_answers).render_html())

@app.get("/healthz")
def healthz():
    return {"ok": True}

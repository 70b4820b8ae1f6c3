import os
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from utils.logger import get_logger
from utils.api.rotator import APIKeyRotator
from utils.api.gemini import GeminiClient, temperature_from_env
from helpers.models import MessageResponse


# ────────────────────────────── App Setup ──────────────────────────────
logger = get_logger("APP", name="gemini_relay")

app = FastAPI(title="Gemini Relay", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ────────────────────────────── Error Shape ──────────────────────────────
# Every failure leaves the service as {"message": "..."}
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=MessageResponse(message=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    logger.warning(f"Rejected {request.method} {request.url.path}: {'; '.join(problems)}")
    return JSONResponse(
        status_code=400,
        content=MessageResponse(message="; ".join(problems) or "Invalid request").model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    return JSONResponse(
        status_code=500,
        content=MessageResponse(message=str(exc) or type(exc).__name__).model_dump(),
    )


# ────────────────────────────── Global Clients ──────────────────────────────
# Key pool (round robin, advanced after auth/quota errors)
gemini_rotator = APIKeyRotator(prefix="GEMINI_API_", max_slots=5)

gemini = GeminiClient(gemini_rotator, temperature=temperature_from_env())
logger.info(f"Gemini relay ready - Model: {gemini.model}, Keys: {len(gemini_rotator)}")

PORT = int(os.getenv("PORT", "3000"))

from pydantic import BaseModel


# ────────────────────────────── Request Models ──────────────────────────────
class GenerateTextRequest(BaseModel):
    prompt: str


# ────────────────────────────── Response Models ──────────────────────────────
class ResultResponse(BaseModel):
    result: str

class MessageResponse(BaseModel):
    message: str

class HealthResponse(BaseModel):
    ok: bool
    model: str
    keys_configured: int

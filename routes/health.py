from helpers.setup import app, gemini, gemini_rotator
from helpers.models import HealthResponse


@app.get("/healthz", response_model=HealthResponse)
def health():
    # ok only reflects whether a key is available; the upstream is not pinged
    return HealthResponse(ok=len(gemini_rotator) > 0, model=gemini.model, keys_configured=len(gemini_rotator))

# routes/generate.py
from typing import Optional

from fastapi import File, Form, HTTPException, Request, UploadFile
from pydantic import ValidationError

from helpers.setup import app, logger, gemini
from helpers.models import GenerateTextRequest, ResultResponse
from utils.api.gemini import GeminiError, build_parts
from utils.service.upload import InlineAttachment, read_attachment

FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_prompt(request: Request) -> str:
    """Prompt from a JSON body or, for form posts, the `prompt` field."""
    ctype = request.headers.get("content-type", "").lower()
    if ctype.startswith(FORM_TYPES):
        form = await request.form()
        value = form.get("prompt")
        prompt = value if isinstance(value, str) else None
    else:
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(400, detail="Request body must be JSON with a 'prompt' field.")
        try:
            prompt = GenerateTextRequest.model_validate(body).prompt
        except ValidationError:
            prompt = None

    if not prompt or not prompt.strip():
        logger.error("Missing prompt in /generate-text request")
        raise HTTPException(400, detail="Please provide a text 'prompt'.")
    return prompt


async def _relay(prompt: Optional[str], attachment: Optional[InlineAttachment], kind: str) -> ResultResponse:
    parts = build_parts(prompt, attachment)
    try:
        text = await gemini.generate(parts)
    except GeminiError as e:
        logger.error(f"Error calling Gemini API with {kind}: {e}")
        raise HTTPException(500, detail=str(e))
    return ResultResponse(result=text)


@app.post("/generate-text", response_model=ResultResponse)
async def generate_text(request: Request):
    prompt = await _read_prompt(request)
    return await _relay(prompt, None, "text")


@app.post("/generate-from-image", response_model=ResultResponse)
async def generate_from_image(
    prompt: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
):
    attachment = await read_attachment(image, field="image", kind="image")
    return await _relay(prompt, attachment, "image")


@app.post("/generate-from-document", response_model=ResultResponse)
async def generate_from_document(
    prompt: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
):
    """Single document (PDF, DOCX, TXT...) sent inline next to the prompt."""
    attachment = await read_attachment(document, field="document", kind="document")
    return await _relay(prompt, attachment, "document")


@app.post("/generate-from-audio", response_model=ResultResponse)
async def generate_from_audio(
    prompt: Optional[str] = Form(None),
    audio: Optional[UploadFile] = File(None),
):
    """Single audio clip (MP3, WAV...) sent inline next to the prompt."""
    attachment = await read_attachment(audio, field="audio", kind="audio")
    return await _relay(prompt, attachment, "audio")

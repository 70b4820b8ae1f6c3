"""
Unit tests for the Gemini client, the key rotator and upload MIME handling
"""
import json

import httpx
import pytest
from httpx import Response

from conftest import gemini_reply
from utils.api.gemini import GeminiClient, GeminiError, build_parts, extract_text
from utils.api.rotator import APIKeyRotator
from utils.service.upload import InlineAttachment, resolve_mime_type

KEY_VARS = [f"GEMINI_API_{i}" for i in range(1, 6)] + ["API_KEY", "GEMINI_API_KEY"]


@pytest.fixture
def clean_env(monkeypatch):
    for name in KEY_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def rotator(clean_env):
    clean_env.setenv("GEMINI_API_1", "key-1")
    return APIKeyRotator(prefix="GEMINI_API_")


@pytest.fixture
def client(rotator):
    return GeminiClient(rotator, model="gemini-test", base_url="https://gemini.example/v1beta", timeout=5)


# ────────────────────────────── Rotator ──────────────────────────────
def test_rotator_collects_numbered_and_single_keys(clean_env):
    clean_env.setenv("GEMINI_API_1", "a")
    clean_env.setenv("GEMINI_API_3", " b ")
    clean_env.setenv("API_KEY", "c")
    clean_env.setenv("GEMINI_API_KEY", "a")

    r = APIKeyRotator(prefix="GEMINI_API_")

    assert r.keys == ["a", "b", "c"]
    assert len(r) == 3
    assert r.get_key() == "a"
    assert r.rotate() == "b"
    assert r.rotate() == "c"
    assert r.rotate() == "a"


def test_rotator_advances_once_per_failed_key(clean_env):
    clean_env.setenv("GEMINI_API_1", "a")
    clean_env.setenv("GEMINI_API_2", "b")
    r = APIKeyRotator(prefix="GEMINI_API_")

    # Two requests that both failed on "a"
    assert r.rotate(failed_key="a") == "b"
    assert r.rotate(failed_key="a") == "b"
    assert r.get_key() == "b"


def test_rotator_without_keys_returns_none(clean_env):
    r = APIKeyRotator(prefix="GEMINI_API_")

    assert len(r) == 0
    assert r.get_key() is None
    assert r.rotate() is None


# ────────────────────────────── Parts / response parsing ──────────────────────────────
def test_build_parts_orders_prompt_before_file():
    att = InlineAttachment(filename="a.png", mime_type="image/png", data="QUJD", size=3)

    assert build_parts("look", att) == [
        {"text": "look"},
        {"inlineData": {"mimeType": "image/png", "data": "QUJD"}},
    ]
    assert build_parts(None, att) == [{"inlineData": {"mimeType": "image/png", "data": "QUJD"}}]
    assert build_parts("", None) == []
    assert build_parts(" \n ", att) == [{"inlineData": {"mimeType": "image/png", "data": "QUJD"}}]


def test_extract_text_joins_parts_and_skips_thoughts():
    data = {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {"text": "thinking...", "thought": True},
                        {"text": "Hello, "},
                        {"text": "world"},
                    ]
                }
            }
        ]
    }

    assert extract_text(data) == "Hello, world"


def test_extract_text_raises_on_empty_candidate():
    with pytest.raises(GeminiError, match="MAX_TOKENS"):
        extract_text({"candidates": [{"content": {"parts": []}, "finishReason": "MAX_TOKENS"}]})


def test_extract_text_raises_on_no_candidates():
    with pytest.raises(GeminiError, match="no candidates"):
        extract_text({})


# ────────────────────────────── Client ──────────────────────────────
@pytest.mark.asyncio
async def test_generate_posts_to_model_endpoint(client, respx_mock):
    route = respx_mock.post(url__startswith="https://gemini.example/v1beta/models/gemini-test:generateContent").mock(
        return_value=Response(200, json=gemini_reply("pong"))
    )

    text = await client.generate([{"text": "ping"}])

    assert text == "pong"
    request = route.calls.last.request
    assert request.headers["x-goog-api-key"] == "key-1"
    assert json.loads(request.content) == {"contents": [{"role": "user", "parts": [{"text": "ping"}]}]}


@pytest.mark.asyncio
async def test_generate_includes_temperature_when_set(rotator, respx_mock):
    client = GeminiClient(rotator, model="gemini-test", base_url="https://gemini.example/v1beta/", temperature=0.2)
    route = respx_mock.post(url__startswith=client.url).mock(return_value=Response(200, json=gemini_reply("x")))

    await client.generate([{"text": "ping"}])

    assert json.loads(route.calls.last.request.content)["generationConfig"] == {"temperature": 0.2}


@pytest.mark.asyncio
async def test_generate_uses_raw_body_when_error_is_not_json(client, respx_mock):
    respx_mock.post(url__startswith=client.url).mock(return_value=Response(503, text="upstream unavailable"))

    with pytest.raises(GeminiError) as exc:
        await client.generate([{"text": "ping"}])

    assert str(exc.value) == "upstream unavailable"
    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_generate_wraps_transport_errors(client, respx_mock):
    respx_mock.post(url__startswith=client.url).mock(side_effect=httpx.ConnectError("connection refused"))

    with pytest.raises(GeminiError, match="Could not reach Gemini API"):
        await client.generate([{"text": "ping"}])


@pytest.mark.asyncio
async def test_generate_rejects_empty_parts(client):
    with pytest.raises(GeminiError):
        await client.generate([])


# ────────────────────────────── MIME resolution ──────────────────────────────
@pytest.mark.parametrize(
    "content_type, filename, expected",
    [
        ("image/png", "x.bin", "image/png"),
        ("Audio/MPEG; charset=binary", None, "audio/mpeg"),
        ("application/octet-stream", "notes.pdf", "application/pdf"),
        (None, "mystery", "application/octet-stream"),
    ],
)
def test_resolve_mime_type(content_type, filename, expected):
    assert resolve_mime_type(content_type, filename) == expected

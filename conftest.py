"""Shared fixtures: in-process ASGI client and a known Gemini key pool."""
import itertools
import os
import sys

import pytest
from httpx import ASGITransport, AsyncClient

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app import app
from helpers.setup import gemini, gemini_rotator


def use_keys(monkeypatch, *keys):
    """Point the shared rotator at a fixed key pool for one test."""
    cycle = itertools.cycle(list(keys) or [""])
    monkeypatch.setattr(gemini_rotator, "keys", list(keys))
    monkeypatch.setattr(gemini_rotator, "_cycle", cycle)
    monkeypatch.setattr(gemini_rotator, "current", next(cycle))


@pytest.fixture(autouse=True)
def gemini_key(monkeypatch):
    use_keys(monkeypatch, "test-key")


@pytest.fixture
def gemini_url() -> str:
    return gemini.url


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def gemini_reply(text: str) -> dict:
    return {
        "candidates": [
            {"content": {"role": "model", "parts": [{"text": text}]}, "finishReason": "STOP"}
        ]
    }

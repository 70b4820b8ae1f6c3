# ────────────────────────────── utils/api/rotator.py ──────────────────────────────
import os
import itertools
from typing import List, Optional

from ..logger import get_logger

logger = get_logger("ROTATOR", __name__)

# Single-key deployments set one of these instead of the numbered slots
SINGLE_KEY_VARS = ("API_KEY", "GEMINI_API_KEY")


class APIKeyRotator:
    """
    Round-robin pool of API keys.
    - Loads keys from numbered env vars (GEMINI_API_1..N) plus the single-key fallbacks
    - get_key() returns the current key
    - rotate() moves to the next key; callers rotate after 401/403/429 so the
      following request uses a different key (the failed request is not retried)
    - rotate(failed_key=k) is a no-op once another caller has already moved past k
    """
    def __init__(self, prefix: str, max_slots: int = 5, fallback_vars=SINGLE_KEY_VARS):
        self.prefix = prefix
        self.keys: List[str] = []
        names = [f"{prefix}{i}" for i in range(1, max_slots + 1)] + list(fallback_vars)
        for name in names:
            v = (os.getenv(name) or "").strip()
            if v and v not in self.keys:
                self.keys.append(v)
        if not self.keys:
            logger.warning(f"No API keys found for prefix {prefix}. Gemini calls will fail.")
            self._cycle = itertools.cycle([""])
        else:
            logger.info(f"Loaded {len(self.keys)} API key(s) for prefix {prefix}")
            self._cycle = itertools.cycle(self.keys)
        self.current = next(self._cycle)

    def __len__(self) -> int:
        return len(self.keys)

    def get_key(self) -> Optional[str]:
        return self.current or None

    def rotate(self, failed_key: Optional[str] = None) -> Optional[str]:
        # Concurrent failures on the same key advance the pool once
        if failed_key is not None and failed_key != self.current:
            return self.get_key()
        self.current = next(self._cycle)
        if len(self.keys) > 1:
            logger.info("Rotated API key.")
        return self.get_key()

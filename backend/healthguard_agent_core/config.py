from __future__ import annotations

import os
from dataclasses import dataclass


_TRUE_VALUES = {"1", "true", "yes"}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class HealthGuardSettings:
    api_key: str = ""
    model: str = "gemini-2.5-pro"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_seconds: float = 25.0
    enable_search: bool = True

    @classmethod
    def from_env(cls) -> "HealthGuardSettings":
        api_key = ""
        for name in ("HEALTHGUARD_API_KEY", "GEMINI_API_KEY", "API_KEY"):
            api_key = (os.getenv(name) or "").strip()
            if api_key:
                break
        return cls(
            api_key=api_key,
            model=(os.getenv("HEALTHGUARD_MODEL") or cls.model).strip(),
            base_url=(os.getenv("HEALTHGUARD_API_BASE_URL") or cls.base_url).strip().rstrip("/"),
            timeout_seconds=float(os.getenv("HEALTHGUARD_TIMEOUT_SECONDS", str(cls.timeout_seconds))),
            enable_search=_env_flag("HEALTHGUARD_ENABLE_SEARCH", "true"),
        )

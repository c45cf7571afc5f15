"""Configuration helpers for the VenturePilot backend."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Mapping

from dotenv import load_dotenv

DEFAULT_MODEL = "gpt-4o"
DEFAULT_IDEA_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TIMEOUT_SECONDS = 60.0

load_dotenv(override=False)


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, read once at startup and never mutated.

    Deployment credentials are only carried through to an injected publisher;
    the orchestration core itself never talks to GitHub or Cloudflare.
    """

    openai_api_key: str | None = None
    model: str = DEFAULT_MODEL
    idea_model: str = DEFAULT_IDEA_MODEL
    default_temperature: float = DEFAULT_TEMPERATURE
    request_timeout: float = DEFAULT_TIMEOUT_SECONDS
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    github_pat: str | None = None
    github_username: str | None = None
    cf_api_token: str | None = None
    cf_account_id: str | None = None

    @property
    def has_model_key(self) -> bool:
        """True when the model provider can be called."""

        return bool(self.openai_api_key)

    @property
    def has_deploy_credentials(self) -> bool:
        """True when every credential a publisher needs is present."""

        return all((self.github_pat, self.github_username, self.cf_api_token, self.cf_account_id))

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "Settings":
        """Build settings from an environment mapping."""

        return cls(
            openai_api_key=environ.get("OPENAI_API_KEY") or None,
            model=environ.get("VENTUREPILOT_MODEL") or DEFAULT_MODEL,
            idea_model=environ.get("VENTUREPILOT_IDEA_MODEL") or DEFAULT_IDEA_MODEL,
            default_temperature=_float_env(environ, "VENTUREPILOT_TEMPERATURE", DEFAULT_TEMPERATURE),
            request_timeout=_float_env(environ, "VENTUREPILOT_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
            allowed_origins=_split_origins(environ.get("VENTUREPILOT_ALLOWED_ORIGINS")),
            github_pat=environ.get("GITHUB_PAT") or environ.get("PAT_GITHUB") or None,
            github_username=environ.get("GITHUB_USERNAME") or None,
            cf_api_token=environ.get("CLOUDFLARE_API_TOKEN") or environ.get("CF_API_TOKEN") or None,
            cf_account_id=environ.get("CF_ACCOUNT_ID") or None,
        )


def _float_env(environ: Mapping[str, str], key: str, default: float) -> float:
    """Parse a float variable, ignoring malformed values."""

    raw = environ.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _split_origins(raw: str | None) -> List[str]:
    if not raw:
        return ["*"]
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read environment variables and return cached settings."""

    return Settings.from_env(os.environ)

"""Settings via pydantic-settings with KINDRED_ env prefix.

The API key uses validation_alias to read the unprefixed GROQ_API_KEY
(or the VITE_GROQ_API_KEY the web frontend already uses), so a single
.env file drives both the frontend build and the Python app.
"""

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Value shipped in .env.example; treated the same as an empty key
API_KEY_PLACEHOLDER = "your_groq_api_key_here"

# Tried in this order, fastest/most reliable first
DEFAULT_CANDIDATE_MODELS = (
    "llama-3.1-8b-instant",
    "llama-3.1-70b-versatile",
    "llama3-8b-8192",
    "mixtral-8x7b-32768",
    "gemma-7b-it",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="KINDRED_", env_file=".env", frozen=True)

    # Remote completion API
    api_key: str = Field("", validation_alias=AliasChoices("GROQ_API_KEY", "VITE_GROQ_API_KEY"))
    api_base_url: str = "https://api.groq.com/openai/v1"
    api_timeout_connect: int = 10  # seconds
    api_timeout_read: int = 60  # seconds

    candidate_models: list[str] = Field(default_factory=lambda: list(DEFAULT_CANDIDATE_MODELS))
    # Off by default: every candidate is tried even after a 401
    stop_on_auth_failure: bool = False

    # Generation knobs, sent verbatim
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 0.9
    frequency_penalty: float = 0.1
    presence_penalty: float = 0.1

    # Runtime
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"

    @model_validator(mode="after")
    def _validate_generation(self) -> "Settings":
        if not self.candidate_models:
            raise ValueError("candidate_models must list at least one model")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature ({self.temperature}) must be between 0 and 2")
        if not 0.0 < self.top_p <= 1.0:
            raise ValueError(f"top_p ({self.top_p}) must be in (0, 1]")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        for name in ("frequency_penalty", "presence_penalty"):
            value = getattr(self, name)
            if not -2.0 <= value <= 2.0:
                raise ValueError(f"{name} ({value}) must be between -2 and 2")
        return self

    @property
    def has_usable_api_key(self) -> bool:
        return bool(self.api_key) and self.api_key != API_KEY_PLACEHOLDER

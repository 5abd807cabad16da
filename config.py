# config.py
"""Configuration settings for the FORGE artifact generation system.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()

# Experimental reasoning models and the known working models used when they
# are switched off.
REASONING_MODEL_FALLBACKS: dict[str, str] = {
    "gpt-5-mini": "gpt-4o",
    "gpt-5-nano": "gpt-4o-mini",
}


class ForgeSettings(BaseSettings):
    """Full configuration for the FORGE system."""

    # API Configuration
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = "nope"

    # Base Model Definitions
    MAJOR_MODEL: str = "gpt-5-mini"
    LIGHT_MODEL: str = "gpt-5-nano"
    CLASSIFIER_MODEL: str = "gpt-4o-mini"
    USE_REASONING_MODELS: bool = False
    PRODUCTION_MODE: bool = False
    REASONING_MODEL_PREFIXES: list[str] = ["gpt-5", "o1", "o3", "o4"]

    # Dynamic Model Assignments (set from base models if not specified in env)
    PLANNER_MODEL: str | None = None
    PLAN_REVIEWER_MODEL: str | None = None
    ANALYZER_MODEL: str | None = None
    DESIGNER_MODEL: str | None = None
    GENERATOR_MODEL: str | None = None
    MODIFIER_MODEL: str | None = None
    DEBUGGER_MODEL: str | None = None

    # Temperature Settings (dropped for reasoning models)
    TEMPERATURE_DEFAULT: float = 0.7
    TEMPERATURE_PLANNING: float = 0.5
    TEMPERATURE_PLAN_REVIEW: float = 0.3
    TEMPERATURE_ANALYSIS: float = 0.3
    TEMPERATURE_UX_DESIGN: float = 0.8
    TEMPERATURE_ARCHITECTURE: float = 0.3
    TEMPERATURE_GENERATION: float = 0.7
    TEMPERATURE_MODIFICATION: float = 0.4
    TEMPERATURE_DIAGNOSIS: float = 0.2

    # Token Limits per Stage
    MAX_TOKENS_PLANNING: int = 1500
    MAX_TOKENS_PLAN_REVIEW: int = 2000
    MAX_TOKENS_ANALYSIS: int = 1500
    MAX_TOKENS_DESIGN: int = 6000
    MAX_TOKENS_GENERATION: int = 2000
    MAX_TOKENS_MODIFICATION: int = 2000
    MAX_TOKENS_DIAGNOSIS: int = 3000

    # LLM Call Settings
    LLM_RETRY_ATTEMPTS: int = 3
    LLM_RETRY_BASE_DELAY_SECONDS: float = 1.0
    LLM_RETRY_JITTER_RATIO: float = 0.0
    LLM_TIMEOUT_SECONDS: float = 45.0
    LLM_REASONING_TIMEOUT_SECONDS: float = 120.0
    HTTPX_TIMEOUT: float = 600.0
    TIKTOKEN_DEFAULT_ENCODING: str = "cl100k_base"
    FALLBACK_CHARS_PER_TOKEN: float = 4.0
    TOKENIZER_CACHE_SIZE: int = 10

    # Structured Output Parsing
    JSON_PREVIEW_CHARS: int = 300
    MAX_ARTIFACT_PROMPT_TOKENS: int = 6000

    # Validation
    ENTRY_ARTIFACT_NAME: str = "App.jsx"
    BANNED_PACKAGES: list[str] = [
        "prop-types",
        "axios",
        "lodash",
        "uuid",
        "moment",
        "class-validator",
        "joi",
        "yup",
        "zod",
        "dotenv",
        "express",
        "mongoose",
    ]
    ALLOWED_PACKAGE_PREFIXES: list[str] = ["react"]
    PLAN_APPROVAL_SCORE: int = 75

    # Artifact Storage
    ARTIFACT_DIR: str = "artifacts"
    ARTIFACT_EXTENSIONS: list[str] = [".jsx", ".js", ".tsx", ".ts", ".css"]

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="FORGE_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] [%(forge_run)s] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = "forge_run.log"
    LOG_DIR: str = "logs"
    ENABLE_RICH_PROGRESS: bool = True

    @model_validator(mode="after")
    def set_dynamic_model_defaults(self) -> ForgeSettings:
        major = self.resolve_model(self.MAJOR_MODEL)
        light = self.resolve_model(self.LIGHT_MODEL)
        if self.PRODUCTION_MODE:
            light = major
        if self.PLANNER_MODEL is None:
            self.PLANNER_MODEL = major
        if self.GENERATOR_MODEL is None:
            self.GENERATOR_MODEL = major
        if self.MODIFIER_MODEL is None:
            self.MODIFIER_MODEL = major
        if self.DEBUGGER_MODEL is None:
            self.DEBUGGER_MODEL = major
        if self.ANALYZER_MODEL is None:
            self.ANALYZER_MODEL = light
        if self.PLAN_REVIEWER_MODEL is None:
            self.PLAN_REVIEWER_MODEL = light
        if self.DESIGNER_MODEL is None:
            self.DESIGNER_MODEL = light
        return self

    def resolve_model(self, preferred_model: str) -> str:
        """Return ``preferred_model`` or its fallback when reasoning models are off."""
        if not self.USE_REASONING_MODELS and preferred_model in REASONING_MODEL_FALLBACKS:
            return REASONING_MODEL_FALLBACKS[preferred_model]
        return preferred_model

    def role_models(self) -> dict[str, str | None]:
        """Return the model assigned to each stage role."""
        return {
            "planner": self.PLANNER_MODEL,
            "plan_reviewer": self.PLAN_REVIEWER_MODEL,
            "analyzer": self.ANALYZER_MODEL,
            "designer": self.DESIGNER_MODEL,
            "generator": self.GENERATOR_MODEL,
            "modifier": self.MODIFIER_MODEL,
            "debugger": self.DEBUGGER_MODEL,
        }

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", populate_by_name=True, extra="ignore"
    )


settings = ForgeSettings()

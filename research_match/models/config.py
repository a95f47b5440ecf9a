"""
Configuration Models

Pydantic models for pipeline configuration validation.
"""

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from research_match.exceptions import ConfigurationError


class LLMConfig(BaseModel):
    """LLM service settings. Credentials never live here (see CredentialManager)."""

    model: Optional[str] = Field(
        default=None, description="Model name; provider default when unset"
    )
    base_url: Optional[str] = Field(
        default=None, description="OpenAI-compatible endpoint; provider default when unset"
    )
    timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for single-item operations; backfill always uses 1",
    )


class BackfillConfig(BaseModel):
    """Backfill scheduler settings."""

    max_candidates: int = Field(default=100, ge=1, le=100)
    inter_call_delay_ms: int = Field(default=400, ge=0, le=60_000)
    show_progress: bool = False


class ExtractionConfig(BaseModel):
    """Character budgets applied before text is sent to the LLM."""

    posting_char_budget: int = Field(default=2000, gt=0)
    resume_char_budget: int = Field(default=12_000, gt=0)


class MatchingConfig(BaseModel):
    """Matching engine settings."""

    default_top_n: int = Field(default=10, ge=1, le=20)
    scorer: Literal["keyword", "llm"] = "keyword"
    max_llm_candidates: int = Field(default=30, ge=1, le=100)


class RateLimiting(BaseModel):
    """Rate limiting for concurrent LLM scoring calls."""

    max_concurrent_llm_calls: int = Field(
        default=5,
        gt=0,
        le=20,
        description="Maximum concurrent LLM calls when the LLM scorer is used",
    )
    llm_requests_per_minute: int = Field(default=60, gt=0, le=10_000)


class SystemParams(BaseModel):
    """Pipeline configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    backfill: BackfillConfig = Field(default_factory=BackfillConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    rate_limiting: RateLimiting = Field(default_factory=RateLimiting)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @classmethod
    def load(cls, config_path: Path | str | None = None) -> "SystemParams":
        """Load pipeline parameters from a JSON config file.

        The file is checked against the JSON schema first so users get
        field-level messages, then parsed into the pydantic model.

        Args:
            config_path: Path to system_params.json (defaults to config/system_params.json)

        Returns:
            SystemParams: Validated configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If schema or model validation fails
        """
        from research_match.utils.validator import ConfigValidator

        if config_path is None:
            config_path = Path("config/system_params.json")
        else:
            config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}. "
                f"Copy {config_path.stem}.example.json to {config_path.name}"
            )

        config_data = ConfigValidator().validate_file(
            config_path, "system_params_schema.json"
        )

        try:
            return cls(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    @classmethod
    def from_env(cls, base: Optional["SystemParams"] = None) -> "SystemParams":
        """Apply environment overrides on top of a base configuration.

        Recognized variables:
            BACKFILL_DELAY_MS: inter-call delay for backfill runs
            LLM_MODEL: model name
            LLM_BASE_URL: OpenAI-compatible endpoint
            LLM_TIMEOUT_SECONDS: per-call timeout

        Args:
            base: Configuration to start from (defaults to built-in defaults)

        Returns:
            New SystemParams with overrides applied

        Raises:
            ConfigurationError: If an override is not a valid value
        """
        params = base or cls()
        data = params.model_dump()

        overrides = {
            ("backfill", "inter_call_delay_ms"): os.getenv("BACKFILL_DELAY_MS"),
            ("llm", "model"): os.getenv("LLM_MODEL"),
            ("llm", "base_url"): os.getenv("LLM_BASE_URL"),
            ("llm", "timeout_seconds"): os.getenv("LLM_TIMEOUT_SECONDS"),
        }
        for (section, key), value in overrides.items():
            if value is not None and value.strip():
                data[section][key] = value.strip()

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid environment override: {e}") from e

    @classmethod
    def load_or_default(cls, config_path: Path | str | None = None) -> "SystemParams":
        """Load the config file if it exists, otherwise use defaults; then apply env overrides."""
        path = Path(config_path) if config_path else Path("config/system_params.json")
        base = cls.load(path) if path.exists() else cls()
        return cls.from_env(base)

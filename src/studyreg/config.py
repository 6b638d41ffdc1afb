"""
Study Registration Configuration

Estimator weights, readiness thresholds, storage and logging, read from
the environment or a .env file. Every field has a working default.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from studyreg.core.exceptions import ConfigurationError
from studyreg.core.schemas import WeightTable


class EstimatorSettings(BaseSettings):
    """Weighting table for the feasibility estimator."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    baseline_population: int = Field(default=10_000, ge=0, alias="STUDYREG_BASELINE_POPULATION")
    reference_radius_miles: float = Field(default=15.0, gt=0, alias="STUDYREG_REFERENCE_RADIUS")
    default_radius_miles: float = Field(default=10.0, ge=1, le=200, alias="STUDYREG_DEFAULT_RADIUS")

    # Multiplicative narrowing
    jdr_factor: float = Field(default=0.65, ge=0.0, le=1.0, alias="STUDYREG_JDR_FACTOR")
    confirmed_diagnosis_factor: float = Field(
        default=0.6, ge=0.0, le=1.0, alias="STUDYREG_CONFIRMED_DIAGNOSIS_FACTOR"
    )
    specific_sex_factor: float = Field(default=0.5, ge=0.0, le=1.0)
    age_factor_floor: float = Field(default=0.15, ge=0.0, le=1.0)
    age_factor_ceiling: float = Field(default=0.65, ge=0.0, le=1.0)
    age_factor_fallback: float = Field(default=0.30, ge=0.0, le=1.0)
    reference_age_min: int = Field(default=18, ge=0)
    reference_age_max: int = Field(default=65, ge=1)

    # Per-item subtraction (exclusions weigh more than inclusions)
    penalty_diagnosis: float = Field(default=250.0, ge=0.0)
    penalty_symptom: float = Field(default=120.0, ge=0.0)
    penalty_demographic_tag: float = Field(default=50.0, ge=0.0)
    penalty_medical_include: float = Field(default=80.0, ge=0.0)
    penalty_medical_exclude: float = Field(default=120.0, ge=0.0)
    penalty_disability_include: float = Field(default=50.0, ge=0.0)
    penalty_disability_exclude: float = Field(default=80.0, ge=0.0)

    def to_weights(self) -> WeightTable:
        """Freeze the current settings into an estimator weight table."""
        return WeightTable(**self.model_dump(by_alias=False))


class ReadinessSettings(BaseSettings):
    """Thresholds for the matched-versus-target readiness check."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    pass_ratio: float = Field(default=0.8, ge=0.0, alias="STUDYREG_READINESS_PASS")
    warn_ratio: float = Field(default=0.3, ge=0.0, alias="STUDYREG_READINESS_WARN")

    @model_validator(mode="after")
    def validate_bands(self) -> "ReadinessSettings":
        if self.warn_ratio > self.pass_ratio:
            raise ConfigurationError(
                "STUDYREG_READINESS_WARN must not exceed STUDYREG_READINESS_PASS",
                {"warn_ratio": self.warn_ratio, "pass_ratio": self.pass_ratio},
            )
        return self


class SessionSettings(BaseSettings):
    """Wizard session storage."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    backend: Literal["memory", "sqlite"] = Field(
        default="memory", alias="STUDYREG_SESSION_BACKEND"
    )
    db_path: Path = Field(default=Path("~/.studyreg/sessions.db"), alias="STUDYREG_DB_PATH")

    @field_validator("db_path", mode="before")
    @classmethod
    def resolve_path(cls, v: str | Path) -> Path:
        """Expand ~ and make the database path absolute."""
        return Path(v).expanduser().resolve()


class LoggingSettings(BaseSettings):
    """Log level and output format."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )
    log_format: Literal["json", "text"] = Field(default="text", alias="LOG_FORMAT")


class FeatureFlags(BaseSettings):
    """Switches for debug-only behaviour."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    debug: bool = Field(default=False, alias="STUDYREG_DEBUG")


class Settings(BaseSettings):
    """
    Main settings aggregator.

    Usage:
        from studyreg.config import get_settings
        settings = get_settings()
        weights = settings.estimator.to_weights()
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    estimator: EstimatorSettings = Field(default_factory=EstimatorSettings)
    readiness: ReadinessSettings = Field(default_factory=ReadinessSettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    features: FeatureFlags = Field(default_factory=FeatureFlags)

    def ensure_directories(self) -> None:
        """Ensure the session database directory exists."""
        if self.sessions.backend == "sqlite":
            self.sessions.db_path.parent.mkdir(parents=True, exist_ok=True)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Settings read once per process."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the environment is read again."""
    global _settings
    _settings = None

from typing import Optional

from pydantic import Field, ImportString, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InferenceConfig(BaseSettings):
    """Scheduling and power policy for the orchestrator."""

    debounce_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Minimum spacing between effective starts for the same input.",
    )
    low_battery_threshold: int = Field(default=30, ge=0, le=100)
    critical_battery_threshold: int = Field(default=15, ge=0, le=100)
    fallback_transcription_model: str = "tiny.en"
    job_history_size: int = Field(default=50, ge=0)
    default_battery_level: int = Field(
        default=100,
        ge=0,
        le=100,
        description="Assumed battery level when the device cannot report one.",
    )

    model_config = SettingsConfigDict(
        env_prefix="INFERENCE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_thresholds(self) -> "InferenceConfig":
        if self.critical_battery_threshold > self.low_battery_threshold:
            raise ValueError(
                "critical_battery_threshold must not exceed low_battery_threshold"
            )
        return self


class DeviceConfig(BaseSettings):
    """Static device profile used when no platform profiler is wired in."""

    transcription_model: str = "moonshine-tiny"
    extraction_model: str = "tinyllama-q4"
    quantization: str = "4bit"
    max_tokens: int = Field(default=128, ge=1)
    mode: str = "batch"
    battery_level: int = Field(default=100, ge=0, le=100)
    models_dir: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="DEVICE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class BackendConfig(BaseSettings):
    """Import paths of the engine and storage factories."""

    transcription_factory: Optional[ImportString] = None
    generation_factory: Optional[ImportString] = None
    storage_factory: Optional[ImportString] = None

    model_config = SettingsConfigDict(
        env_prefix="BACKEND_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class NormalizerConfig(BaseSettings):
    """Transcript normalizer configuration."""

    fillers: list[str] = [
        "um",
        "uh",
        "like",
        "you know",
        "i mean",
        "sort of",
        "kind of",
    ]

    model_config = SettingsConfigDict(
        env_prefix="NORMALIZER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "VoiceTask Inference Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: str = "logs/app.log"
    pipeline_log_file: str = "logs/inference_pipeline.log"

    # Orchestrator policy
    inference: InferenceConfig = Field(default_factory=InferenceConfig)

    # Static device profile
    device: DeviceConfig = Field(default_factory=DeviceConfig)

    # Engine / storage wiring
    backends: BackendConfig = Field(default_factory=BackendConfig)

    # Transcript normalizer
    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()

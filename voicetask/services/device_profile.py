"""Static device profile served from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from voicetask.config.settings import DeviceConfig
    from voicetask.pipelines.inference.types import ModelConfiguration


class StaticDeviceProfile:
    """Device profile that always reports the configured models and battery."""

    def __init__(self, configuration: "ModelConfiguration", battery_level: int = 100) -> None:
        self._configuration = configuration
        self.battery_level = battery_level

    @classmethod
    def from_config(cls, config: "DeviceConfig") -> "StaticDeviceProfile":
        from voicetask.pipelines.inference.types import ModelConfiguration

        configuration = ModelConfiguration(
            transcription_model=config.transcription_model,
            extraction_model=config.extraction_model,
            quantization=config.quantization,
            max_tokens=config.max_tokens,
            mode=config.mode,
        )
        return cls(configuration, battery_level=config.battery_level)

    async def get_model_configuration(self) -> "ModelConfiguration":
        return self._configuration

    async def get_battery_level(self) -> int:
        return self.battery_level


__all__ = ["StaticDeviceProfile"]

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from ..templates.schema import Template, clamp, validate
from ..utils.event_log import EventLog, NullLog


@dataclass(frozen=True)
class DeviceExposureLimits:
    min_bias: float = -8.0
    max_bias: float = 8.0
    max_white_balance_gain: float = 4.0


@dataclass(frozen=True)
class WhiteBalanceGains:
    red: float
    green: float
    blue: float


@dataclass(frozen=True)
class ExposureSettings:
    exposure_bias: float
    temperature: float
    tint: float


def exposure_targets(template: Template, limits: DeviceExposureLimits = DeviceExposureLimits()) -> ExposureSettings:
    """Exposure / white-balance values to push to the capture device for a template."""
    targets = validate(template).camera_targets
    lo, hi = sorted((float(limits.min_bias), float(limits.max_bias)))
    return ExposureSettings(
        exposure_bias=clamp(targets.exposure_bias, lo, hi),
        temperature=targets.white_balance.temperature,
        tint=targets.white_balance.tint,
    )


def clamp_gains(gains: WhiteBalanceGains, max_gain: float) -> WhiteBalanceGains:
    # Devices reject gains below 1.0 or above their own maximum.
    top = max(1.0, float(max_gain))
    return WhiteBalanceGains(
        red=clamp(gains.red, 1.0, top),
        green=clamp(gains.green, 1.0, top),
        blue=clamp(gains.blue, 1.0, top),
    )


class ExposureDevice(Protocol):
    def exposure_limits(self) -> DeviceExposureLimits:
        ...

    def white_balance_gains(self, temperature: float, tint: float) -> WhiteBalanceGains:
        """Device RGB gains for a temperature/tint pair, before clamping."""
        ...

    def lock_exposure(self, exposure_bias: float, gains: WhiteBalanceGains) -> None:
        ...


def apply_exposure(
    template: Template,
    device: ExposureDevice,
    log: Optional[EventLog] = None,
) -> Optional[ExposureSettings]:
    """Push a template's exposure bias and locked white balance to ``device``.

    Returns the settings that were applied, or None when the device refused them.
    """
    log = log or NullLog()
    try:
        limits = device.exposure_limits()
        settings = exposure_targets(template, limits)
        gains = device.white_balance_gains(settings.temperature, settings.tint)
        device.lock_exposure(settings.exposure_bias, clamp_gains(gains, limits.max_white_balance_gain))
    except (OSError, RuntimeError, ValueError) as exc:
        log.error(f"Failed to apply exposure/WB settings: {exc}", component="Exposure")
        return None
    log.info(
        f"Exposure lock: ev={settings.exposure_bias:.2f} temp={settings.temperature:.0f}K tint={settings.tint:.1f}",
        component="Exposure",
    )
    return settings

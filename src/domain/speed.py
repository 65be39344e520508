"""
Speed conversion, smoothing and classification.

Smoothing
---------
GPS speed is noisy, so raw samples go through a linearly weighted moving
average over the last ``window`` readings (newest reading weight ``n``,
oldest weight ``1``).  The filter is stateful; one instance belongs to a
single monitoring session and is reset between trips.

Alert levels (by excess = smoothed speed - posted limit, in mph)
-----------------------------------------------------------------
  excess <= 0                      normal
  0 < excess < warning_threshold   caution
  warning <= excess < danger       warning
  excess >= danger_threshold       danger
"""

from __future__ import annotations

from collections import deque

import h3

from .enums import Severity, SpeedAlertLevel

MPS_TO_MPH = 2.237
KMH_TO_MPH = 0.621371

WARNING_THRESHOLD_MPH = 3.0
DANGER_THRESHOLD_MPH = 6.0


def mps_to_mph(speed_mps: float) -> float:
    return speed_mps * MPS_TO_MPH


def kmh_to_mph(speed_kmh: float) -> float:
    return speed_kmh * KMH_TO_MPH


class SpeedSmoother:
    def __init__(self, window: int = 5):
        if window < 1:
            raise ValueError("smoothing window must be at least 1")
        self._readings: deque[float] = deque(maxlen=window)

    def update(self, speed: float) -> float:
        """Add a raw reading and return the smoothed value.  O(window)."""
        self._readings.append(speed)
        weighted = sum(s * (i + 1) for i, s in enumerate(self._readings))
        total_weight = len(self._readings) * (len(self._readings) + 1) / 2
        return weighted / total_weight

    def reset(self) -> None:
        self._readings.clear()

    def __len__(self) -> int:
        return len(self._readings)


def classify_alert_level(
    excess_mph: float,
    warning_threshold: float = WARNING_THRESHOLD_MPH,
    danger_threshold: float = DANGER_THRESHOLD_MPH,
) -> SpeedAlertLevel:
    if excess_mph <= 0:
        return SpeedAlertLevel.NORMAL
    if excess_mph < warning_threshold:
        return SpeedAlertLevel.CAUTION
    if excess_mph < danger_threshold:
        return SpeedAlertLevel.WARNING
    return SpeedAlertLevel.DANGER


def severity_for_excess(excess_mph: float) -> Severity:
    if excess_mph < 10:
        return Severity.LOW
    if excess_mph < 20:
        return Severity.MEDIUM
    return Severity.HIGH


def location_cell(lat: float, lng: float, resolution: int = 10) -> str:
    """Map a geo-point to an H3 cell; used as the speed-limit cache key.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import date, timedelta

from doviz.modules.rates.schemas import RateSample

MAX_DETAILED_DAYS = 180


@dataclass(frozen=True)
class CurveProfile:
    primary_freq: float
    primary_amp: float
    secondary_freq: float
    secondary_amp: float
    noise_freq: float
    noise_amp: float
    trend_interval: int
    trend_freq: float
    trend_amp: float
    momentum_decay: float
    momentum_gain: float
    jump_amp: float
    # None means jumps land deterministically every ``jump_period`` days.
    jump_probability: float | None
    jump_period: int = 50


SYNTHETIC_PROFILE = CurveProfile(
    primary_freq=0.05,
    primary_amp=0.008,
    secondary_freq=0.1,
    secondary_amp=0.004,
    noise_freq=0.3,
    noise_amp=0.002,
    trend_interval=20,
    trend_freq=0.02,
    trend_amp=0.003,
    momentum_decay=0.95,
    momentum_gain=0.2,
    jump_amp=0.02,
    jump_probability=0.03,
)

FALLBACK_PROFILE = CurveProfile(
    primary_freq=0.04,
    primary_amp=0.006,
    secondary_freq=0.08,
    secondary_amp=0.003,
    noise_freq=0.2,
    noise_amp=0.0015,
    trend_interval=25,
    trend_freq=0.015,
    trend_amp=0.002,
    momentum_decay=0.9,
    momentum_gain=0.15,
    jump_amp=0.015,
    jump_probability=None,
)


def pair_seed(code: str, base_code: str) -> float:
    return (ord(base_code[0]) + ord(code[0])) / 100


def calendar_day_seed(today: date) -> int:
    return today.day + (today.month - 1) * 31


def generate_curve(
    anchor: float,
    days: int,
    *,
    today: date,
    seed: float,
    profile: CurveProfile = SYNTHETIC_PROFILE,
    rng: random.Random | None = None,
    day_seed: int = 0,
) -> list[RateSample]:
    """Walk a plausible rate path backward from ``anchor`` (today's value).

    Returns ``min(days, 180) + 1`` samples in chronological order; the last one
    is today and equals the anchor.
    """
    rng = rng or random.Random()
    detailed_days = max(0, min(days, MAX_DETAILED_DAYS))

    rate = anchor
    trend = 0.0
    momentum = 0.0
    walked: list[RateSample] = []
    for i in range(detailed_days + 1):
        walked.append(RateSample(date=today - timedelta(days=i), value=round(rate, 6)))

        primary = math.sin(i * profile.primary_freq + seed) * profile.primary_amp
        secondary = math.sin(i * profile.secondary_freq + seed * 2) * profile.secondary_amp
        noise = math.sin(i * profile.noise_freq + seed * 3) * profile.noise_amp

        if i % profile.trend_interval == 0:
            trend = math.sin(i * profile.trend_freq + seed * 4) * profile.trend_amp

        momentum = momentum * profile.momentum_decay + primary * profile.momentum_gain

        if profile.jump_probability is None:
            jumped = (i + day_seed) % profile.jump_period == 0
        else:
            jumped = rng.random() < profile.jump_probability
        jump = math.sin(i + seed * 5) * profile.jump_amp if jumped else 0.0

        rate = rate * (1 + primary + secondary + noise + trend + momentum + jump)

    walked.reverse()
    return walked

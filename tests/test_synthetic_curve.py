from __future__ import annotations

import random
from datetime import date, timedelta

from doviz.modules.rates.synthetic import (
    FALLBACK_PROFILE,
    SYNTHETIC_PROFILE,
    calendar_day_seed,
    generate_curve,
    pair_seed,
)

TODAY = date(2025, 3, 15)


def test_curve_ends_on_anchor_in_chronological_order():
    curve = generate_curve(
        1.2345678, 30, today=TODAY, seed=1.5, profile=SYNTHETIC_PROFILE, rng=random.Random(1)
    )

    assert len(curve) == 31
    assert curve[0].date == TODAY - timedelta(days=30)
    assert curve[-1].date == TODAY
    assert curve[-1].value == 1.234568
    assert all(s.value > 0 for s in curve)
    assert [s.date for s in curve] == sorted(s.date for s in curve)


def test_curve_length_is_capped():
    curve = generate_curve(1.0, 365, today=TODAY, seed=0.5, rng=random.Random(1))
    assert len(curve) == 181
    assert generate_curve(1.0, 0, today=TODAY, seed=0.5)[0].value == 1.0


def test_fallback_profile_is_deterministic():
    day_seed = calendar_day_seed(TODAY)
    first = generate_curve(
        0.9, 90, today=TODAY, seed=day_seed / 100, profile=FALLBACK_PROFILE, day_seed=day_seed
    )
    second = generate_curve(
        0.9, 90, today=TODAY, seed=day_seed / 100, profile=FALLBACK_PROFILE, day_seed=day_seed
    )
    assert first == second


def test_curve_moves_away_from_anchor():
    curve = generate_curve(100.0, 60, today=TODAY, seed=1.54, rng=random.Random(5))
    assert len({s.value for s in curve}) > 1


def test_seeds():
    assert pair_seed("EUR", "USD") == (ord("U") + ord("E")) / 100
    assert calendar_day_seed(date(2025, 3, 15)) == 15 + 2 * 31
    assert calendar_day_seed(date(2025, 1, 1)) == 1

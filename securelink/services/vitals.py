import random
import time
from typing import Optional

from django.conf import settings
from django.core.cache import cache

LATEST_KEY = 'vitals:latest'
BASE_HEART_RATE = 72
BASE_SPO2 = 98


def record_vitals(bpm, spo2, *, now: Optional[float] = None) -> dict:
    reading = {'bpm': str(bpm), 'spo2': str(spo2), 'timestamp': int((now or time.time()) * 1000)}
    cache.set(LATEST_KEY, reading, None)
    return reading


def _mock_vitals(now: float) -> dict:
    # small drift around resting values so a monitor view looks live
    bpm = max(60, min(100, BASE_HEART_RATE + random.randint(-3, 4)))
    spo2 = max(95, min(100, BASE_SPO2 + random.randint(-1, 1)))
    return {'bpm': str(bpm), 'spo2': str(spo2), 'timestamp': int(now * 1000)}


def latest_vitals(*, now: Optional[float] = None) -> tuple[dict, bool]:
    """Return (reading, is_real). Real readings older than VITALS_FRESH_SECONDS are replaced by a mock."""
    now = now or time.time()
    reading = cache.get(LATEST_KEY)
    if reading and now * 1000 - reading['timestamp'] < settings.VITALS_FRESH_SECONDS * 1000:
        return reading, True
    return _mock_vitals(now), False

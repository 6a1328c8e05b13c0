"""Topical context detection for guest questions.

A QR code placed in a room supplies a default context (``kitchen`` for the
code on the fridge, and so on). A question that clearly targets another
area overrides it.

Scoring sums the length of every keyword found in the lower-cased
question, so long specific phrases outweigh short generic ones. Ties keep
the topic that comes first in ``CONTEXT_KEYWORDS``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

DEFAULT_CONTEXT: Final[str] = "general"
MIN_SCORE: Final[int] = 2
SCORE_SATURATION: Final[float] = 20.0
CONFIDENCE_THRESHOLD: Final[float] = 0.3

CONTEXT_KEYWORDS: Final[dict[str, tuple[str, ...]]] = {
    "kitchen": (
        "kitchen", "cook", "cooking", "oven", "stove", "microwave", "fridge",
        "refrigerator", "freezer", "dishwasher", "coffee", "toaster", "blender",
        "utensil", "plate", "cup", "glass", "pot", "pan", "trash", "recycling",
        "garbage", "disposal", "sink", "ice", "water filter",
    ),
    "tv": (
        "tv", "television", "remote", "netflix", "hulu", "streaming", "roku",
        "apple tv", "fire stick", "chromecast", "hdmi", "speaker", "sound",
        "volume", "surround", "soundbar", "movie", "channel", "cable",
        "bluetooth", "airplay",
    ),
    "thermostat": (
        "thermostat", "temperature", "ac", "a/c", "air conditioning", "heating",
        "heat", "cold", "warm", "cool", "fan", "hvac", "climate", "furnace",
        "heater",
    ),
    "bathroom": (
        "bathroom", "shower", "bath", "tub", "bathtub", "hot water", "towel",
        "toilet", "shampoo", "soap", "toiletries", "hair dryer", "drain",
    ),
    "pool": (
        "pool", "hot tub", "jacuzzi", "spa", "swim", "swimming", "sauna",
        "pool heater", "pool cover", "chlorine",
    ),
    "checkout": (
        "checkout", "check-out", "check out", "leaving", "departure", "depart",
        "key return", "final", "last day", "vacate", "clean up before",
        "strip the bed", "take out trash",
    ),
    "bedroom": (
        "bedroom", "bed", "pillow", "blanket", "sheets", "linen", "mattress",
        "closet", "hanger", "sofa bed", "bunk", "nightstand", "alarm clock",
    ),
    "parking": (
        "parking", "park", "garage", "driveway", "street parking", "ev charger",
        "charger", "charging station", "carport", "parking permit",
    ),
    "amenities": (
        "washer", "dryer", "laundry", "iron", "grill", "bbq", "gym", "fitness",
        "bicycle", "bikes", "kayak", "board games", "beach chairs", "high chair",
    ),
    "policies": (
        "pets", "pet", "dog", "allowed", "quiet hours", "quiet", "noise",
        "smoking", "smoke", "vape", "party", "parties", "permitted",
        "house rules", "extra guests",
    ),
}


@dataclass(frozen=True)
class ContextResolution:
    context: str
    source: Literal["detected", "fallback"]
    confidence: float


def detect_context(question: str) -> tuple[str | None, float]:
    """Return the best-matching topic and its confidence, or ``(None, 0.0)``."""
    lower = question.lower()
    best_context: str | None = None
    best_score = 0

    for context, keywords in CONTEXT_KEYWORDS.items():
        score = sum(len(keyword) for keyword in keywords if keyword in lower)
        # Strictly greater: ties keep the earlier topic.
        if score > best_score:
            best_score = score
            best_context = context

    if best_score < MIN_SCORE:
        return None, 0.0
    return best_context, min(best_score / SCORE_SATURATION, 1.0)


def resolve_context(question: str, default: str | None = None) -> ContextResolution:
    """Pick the detected topic when confident, else the supplied default."""
    detected, confidence = detect_context(question)
    if detected is not None and confidence >= CONFIDENCE_THRESHOLD:
        return ContextResolution(context=detected, source="detected", confidence=confidence)
    return ContextResolution(
        context=default or DEFAULT_CONTEXT,
        source="fallback",
        confidence=confidence,
    )

# backends/base.py
from __future__ import annotations

import os
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

SENTIMENT_EMOJI = {
    "positive": "\U0001F60A",
    "negative": "\U0001F614",
    "neutral": "\U0001F610",
}

SENTIMENT_LABELS = frozenset(SENTIMENT_EMOJI)


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ImagePrediction:
    label: str
    confidence: float
    id: str = field(default_factory=_new_id, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "confidence", _clamp_unit(self.confidence))

    @property
    def confidence_percent(self) -> str:
        return "%.1f%%" % (self.confidence * 100)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SentimentResult:
    label: str                        # positive | negative | neutral
    confidence: float                 # 0..1
    raw_score: Optional[float] = None  # -1..+1, fallback scorer only
    id: str = field(default_factory=_new_id, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "label", str(self.label).lower())
        object.__setattr__(self, "confidence", _clamp_unit(self.confidence))
        if self.raw_score is not None:
            object.__setattr__(self, "raw_score", max(-1.0, min(1.0, float(self.raw_score))))

    @property
    def emoji(self) -> str:
        return SENTIMENT_EMOJI.get(self.label, SENTIMENT_EMOJI["neutral"])

    @property
    def confidence_percent(self) -> str:
        return "%.1f%%" % (self.confidence * 100)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if self.raw_score is None:
            d.pop("raw_score")
        return d


class InferenceModel(Protocol):
    """Opaque model capability. One call, one output mapping."""

    def predict(self, features: Mapping[str, Any]) -> Mapping[str, Any]:
        """
        Image models take {"image": ndarray} and return {"classLabelProbs": {label: prob}}.
        Sentiment models take {"text": str} and return
        {"label": str, "labelProbability": {label: prob}}.
        """


@dataclass(frozen=True)
class ModelResource:
    """A named, pre-compiled model artifact under a root directory."""
    root: str
    name: str

    @property
    def path(self) -> str:
        return os.path.join(self.root, self.name)

    @property
    def labels_path(self) -> str:
        stem, _ = os.path.splitext(self.path)
        return stem + ".labels.txt"

    def exists(self) -> bool:
        return bool(self.name) and os.path.exists(self.path)

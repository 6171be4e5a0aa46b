"""
Text sentiment backend.

Prefers a trained sentiment model when one is loaded; otherwise scores the
text with the built-in lexicon scorer and derives the label from the score.
Callers can only tell the paths apart by `raw_score`, which is set on the
lexicon path only.
"""

import logging
from collections.abc import Mapping
from concurrent.futures import Executor
from typing import List, Optional, Sequence, Tuple

from backends.base import SENTIMENT_LABELS, InferenceModel, ModelResource, SentimentResult
from backends.errors import EmptyText, PredictionFailed
from backends.lexicon import LexiconSentimentScorer
from backends.model_registry import ModelRegistry, get_model_registry
from backends.transformers_model import load_sentiment_model
from invokers.async_request import AsyncRequestWrapper
from invokers.batch import run_batch

logger = logging.getLogger(__name__)

POSITIVE_THRESHOLD = 0.1
NEGATIVE_THRESHOLD = -0.1
MIN_SCORE_CONFIDENCE = 0.5

TEXT_INPUT = "text"
LABEL_OUTPUT = "label"
PROBS_OUTPUT = "labelProbability"


def score_to_label(score: float) -> Tuple[str, float]:
    """
    Map a score in [-1, +1] to (label, confidence).

    > 0.1 is positive, < -0.1 negative, anything between is neutral.
    Confidence is |score| * 2 capped at 1.0, never below 0.5.
    """
    confidence = min(abs(score) * 2.0, 1.0)
    if score > POSITIVE_THRESHOLD:
        label = "positive"
    elif score < NEGATIVE_THRESHOLD:
        label = "negative"
    else:
        label = "neutral"
    return label, max(confidence, MIN_SCORE_CONFIDENCE)


class SentimentClassifierBackend:
    def __init__(
        self,
        model: Optional[InferenceModel] = None,
        *,
        scorer: Optional[LexiconSentimentScorer] = None,
        name: str = "sentiment",
        model_path: str = "",
        device: str = "cpu",
        executor: Optional[Executor] = None,
        registry: Optional[ModelRegistry] = None,
    ):
        self.model = model
        self.scorer = scorer or LexiconSentimentScorer()
        self.name = name

        self._requests = AsyncRequestWrapper(self, executor, name=f"SentimentClassifier.{name}")
        self.registry = registry or get_model_registry()
        if model is not None:
            self.registry.register_model(name, model_path, "transformers", device)
        else:
            self.registry.register_model(name, "", "lexicon", "cpu")

    @classmethod
    def from_resource(
        cls,
        resource: Optional[ModelResource],
        *,
        device: str = "auto",
        max_length: int = 256,
        **kwargs,
    ) -> "SentimentClassifierBackend":
        model = None
        if resource is not None:
            model = load_sentiment_model(resource, device=device, max_length=max_length)
        if model is None:
            return cls(None, **kwargs)
        return cls(
            model,
            model_path=resource.path,
            device=getattr(model, "device", device),
            **kwargs,
        )

    @property
    def uses_model(self) -> bool:
        return self.model is not None

    # ---------------------------
    # Worker-side (blocking)
    # ---------------------------
    def classify_with_model(self, text: str) -> SentimentResult:
        output = self.model.predict({TEXT_INPUT: text})
        if not isinstance(output, Mapping):
            raise PredictionFailed()
        label = output.get(LABEL_OUTPUT)
        if not isinstance(label, str) or not label:
            raise PredictionFailed()
        if label.lower() not in SENTIMENT_LABELS:
            logger.warning(f"[SentimentClassifier] model emitted unknown label {label!r}")
            raise PredictionFailed()

        confidence = 0.5
        probs = output.get(PROBS_OUTPUT)
        if isinstance(probs, Mapping) and probs:
            if label in probs:
                confidence = float(probs[label])
            elif label.lower() in probs:
                confidence = float(probs[label.lower()])
            else:
                confidence = max(float(p) for p in probs.values())
        return SentimentResult(label=label.lower(), confidence=confidence)

    def classify_with_lexicon(self, text: str) -> SentimentResult:
        score = float(self.scorer.score(text))
        label, confidence = score_to_label(score)
        return SentimentResult(label=label, confidence=confidence, raw_score=score)

    def predict_blocking(self, text: str) -> SentimentResult:
        if self.model is not None:
            return self.classify_with_model(text)
        return self.classify_with_lexicon(text)

    # ---------------------------
    # Async API
    # ---------------------------
    async def analyze(self, text: str) -> SentimentResult:
        trimmed = text.strip() if isinstance(text, str) else ""
        if not trimmed:
            raise EmptyText()
        return await self._requests.call(SentimentClassifierBackend.predict_blocking, trimmed)

    async def analyze_batch(self, texts: Sequence[str]) -> List[SentimentResult]:
        """Analyze every text concurrently; results follow input order."""
        return await run_batch(self.analyze, texts)

    # ---------------------------
    # Lifecycle
    # ---------------------------
    def close(self) -> None:
        self._requests.shutdown(wait=False)
        if self.registry.is_loaded(self.name):
            self.registry.unregister_model(self.name)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

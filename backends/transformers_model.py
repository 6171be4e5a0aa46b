# backends/transformers_model.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional, Set

import torch
from transformers import AutoModelForSequenceClassification, AutoTokenizer

from .base import SENTIMENT_LABELS, InferenceModel, ModelResource
from .torch_model import resolve_device

logger = logging.getLogger(__name__)


class TransformersSentimentModel(InferenceModel):
    """
    Hugging Face sequence-classification model used as a sentiment classifier.

    Labels come from `model.config.id2label` and are lower-cased, so a
    checkpoint labelled POSITIVE/NEGATIVE/NEUTRAL maps straight onto ours.
    """

    def __init__(self, model, tokenizer, device: str = "cpu", max_length: int = 256):
        self.model = model
        self.tokenizer = tokenizer
        self.device = device
        self.max_length = max_length

        self.model.to(device)
        self.model.eval()

    @classmethod
    def load(cls, resource: ModelResource, device: str = "cpu", max_length: int = 256):
        tokenizer = AutoTokenizer.from_pretrained(resource.path)
        model = AutoModelForSequenceClassification.from_pretrained(resource.path)
        return cls(model, tokenizer, device=device, max_length=max_length)

    @property
    def label_names(self) -> Set[str]:
        mapping = getattr(self.model.config, "id2label", None) or {}
        return {str(v).lower() for v in mapping.values()}

    def _id2label(self, num_labels: int) -> Dict[int, str]:
        mapping = getattr(self.model.config, "id2label", None) or {}
        return {i: str(mapping.get(i, i)).lower() for i in range(num_labels)}

    def predict(self, features: Mapping[str, Any]) -> Dict[str, Any]:
        encoding = self.tokenizer(
            features["text"],
            truncation=True,
            max_length=self.max_length,
            return_tensors="pt",
        )
        inputs = {k: v.to(self.device) for k, v in encoding.items()}

        with torch.no_grad():
            logits = self.model(**inputs).logits

        probs = torch.softmax(logits.float(), dim=-1)[0].cpu().tolist()
        id2label = self._id2label(len(probs))
        label_probs = {id2label[i]: float(p) for i, p in enumerate(probs)}
        best = max(range(len(probs)), key=lambda i: probs[i])
        return {"label": id2label[best], "labelProbability": label_probs}


def load_sentiment_model(
    resource: ModelResource,
    device: str = "auto",
    max_length: int = 256,
) -> Optional[TransformersSentimentModel]:
    """Load the sentiment classifier, or return None so callers fall back to the lexicon."""
    if not resource.exists():
        logger.info(
            f"[SentimentClassifier] no model at {resource.path or '<unset>'}, using lexicon scorer"
        )
        return None

    dev = resolve_device(device)
    try:
        model = TransformersSentimentModel.load(resource, device=dev, max_length=max_length)
    except Exception as e:
        logger.warning(
            f"[SentimentClassifier] failed to load {resource.path}: {e!r}; using lexicon scorer"
        )
        return None

    if not model.label_names or not model.label_names <= SENTIMENT_LABELS:
        logger.warning(
            f"[SentimentClassifier] {resource.path} labels {sorted(model.label_names)} "
            f"do not map onto {sorted(SENTIMENT_LABELS)}; using lexicon scorer"
        )
        return None

    logger.info(f"[SentimentClassifier] loaded {os.path.basename(resource.path)} on {dev}")
    return model

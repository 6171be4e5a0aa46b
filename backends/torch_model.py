# backends/torch_model.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import torch

from .base import InferenceModel, ModelResource
from .errors import ModelLoadFailed, PredictionFailed

logger = logging.getLogger(__name__)


def resolve_device(device: Optional[str]) -> str:
    device = (device or "auto").strip().lower()
    if device == "auto":
        return "cuda" if torch.cuda.is_available() else "cpu"
    return device


def read_labels(path: str) -> List[str]:
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


class TorchScriptImageModel(InferenceModel):
    """
    TorchScript image classifier.

    Expects a scripted/traced module that maps a float32 batch to logits
    of shape [1, num_labels], plus a sidecar labels file (one per line).
    """

    def __init__(self, module: torch.jit.ScriptModule, labels: List[str], device: str = "cpu"):
        self.module = module
        self.labels = labels
        self.device = device

    @classmethod
    def load(cls, resource: ModelResource, device: str = "cpu") -> "TorchScriptImageModel":
        module = torch.jit.load(resource.path, map_location=device)
        module.eval()
        labels = read_labels(resource.labels_path) if os.path.exists(resource.labels_path) else []
        return cls(module, labels, device=device)

    def predict(self, features: Mapping[str, Any]) -> Dict[str, Any]:
        pixels = features["image"]
        tensor = torch.from_numpy(np.ascontiguousarray(pixels, dtype=np.float32)).to(self.device)

        with torch.inference_mode():
            logits = self.module(tensor)

        if isinstance(logits, (list, tuple)):
            logits = logits[0]
        probs = torch.softmax(logits.float().reshape(1, -1), dim=-1)[0].cpu().numpy()

        labels = self.labels or [str(i) for i in range(len(probs))]
        if len(labels) != len(probs):
            raise PredictionFailed(
                f"Model produced {len(probs)} scores for {len(labels)} labels."
            )
        return {"classLabelProbs": {label: float(p) for label, p in zip(labels, probs)}}


def load_image_model(resource: ModelResource, device: str = "auto") -> TorchScriptImageModel:
    """Load the image classifier. Absence or corruption is a hard failure."""
    if not resource.exists():
        logger.error(f"[ImageClassifier] model artifact not found: {resource.path}")
        raise ModelLoadFailed(f"Image model not found: {resource.name or '<unset>'}")

    dev = resolve_device(device)
    try:
        model = TorchScriptImageModel.load(resource, device=dev)
    except Exception as e:
        logger.error(f"[ImageClassifier] failed to load {resource.path}: {e!r}")
        raise ModelLoadFailed() from e

    logger.info(
        f"[ImageClassifier] loaded {os.path.basename(resource.path)} on {dev} "
        f"({len(model.labels)} labels)"
    )
    return model

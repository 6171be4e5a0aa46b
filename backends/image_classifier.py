"""
Image classification backend.

Owns one loaded image model for its whole lifetime and runs predictions on
a single dedicated worker thread, so calls into the model are serialized.
"""

import logging
import math
from collections.abc import Mapping
from concurrent.futures import Executor
from typing import Any, List, Optional, Sequence

import numpy as np
from PIL import Image

from backends.base import ImagePrediction, InferenceModel, ModelResource
from backends.errors import (
    InvalidInput,
    ModelLoadFailed,
    NoPredictions,
    PixelConversionFailed,
    PredictionFailed,
)
from backends.model_registry import ModelRegistry, get_model_registry
from backends.torch_model import load_image_model
from backends.utils import PIXEL_LAYOUTS, letterbox, to_pixel_array
from invokers.async_request import AsyncRequestWrapper
from invokers.batch import run_batch

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
PROBS_OUTPUT = "classLabelProbs"
IMAGE_INPUT = "image"


def rank_predictions(probabilities: Any, top_k: int) -> List[ImagePrediction]:
    """
    Sort a label -> probability mapping, highest first, and keep top_k.
    Equal probabilities are ordered by label. Scores are clamped to [0, 1]
    before sorting; a non-finite score fails the whole prediction.
    """
    if not isinstance(probabilities, Mapping) or not probabilities:
        raise NoPredictions()

    scored = []
    for label, p in probabilities.items():
        p = float(p)
        if not math.isfinite(p):
            logger.warning(f"[ImageClassifier] non-finite score {p!r} for label {label!r}")
            raise PredictionFailed()
        scored.append((str(label), max(0.0, min(1.0, p))))

    ranked = sorted(scored, key=lambda kv: (-kv[1], kv[0]))
    return [ImagePrediction(label=label, confidence=p) for label, p in ranked[:top_k]]


class ImageClassifierBackend:
    def __init__(
        self,
        model: Optional[InferenceModel],
        *,
        input_size: int = 224,
        pixel_layout: str = "nchw",
        mean: Optional[Sequence[float]] = None,
        std: Optional[Sequence[float]] = None,
        name: str = "image",
        model_path: str = "",
        kind: str = "custom",
        device: str = "cpu",
        executor: Optional[Executor] = None,
        registry: Optional[ModelRegistry] = None,
    ):
        if model is None:
            raise ModelLoadFailed("Image model is not available.")
        if pixel_layout not in PIXEL_LAYOUTS:
            raise ValueError(f"pixel_layout must be one of {PIXEL_LAYOUTS}, got {pixel_layout!r}")
        if int(input_size) <= 0:
            raise ValueError("input_size must be positive")

        self.model = model
        self.name = name
        self.input_size = int(input_size)
        self.pixel_layout = pixel_layout
        self.mean = list(mean) if mean is not None else None
        self.std = list(std) if std is not None else None

        self._requests = AsyncRequestWrapper(self, executor, name=f"ImageClassifier.{name}")
        self.registry = registry or get_model_registry()
        self.registry.register_model(name, model_path, kind, device)

    @classmethod
    def from_resource(
        cls,
        resource: ModelResource,
        *,
        device: str = "auto",
        **kwargs,
    ) -> "ImageClassifierBackend":
        model = load_image_model(resource, device=device)
        return cls(
            model,
            model_path=resource.path,
            kind="torchscript",
            device=getattr(model, "device", device),
            **kwargs,
        )

    # ---------------------------
    # Worker-side (blocking)
    # ---------------------------
    def prepare_input(self, image: Image.Image) -> np.ndarray:
        try:
            square = letterbox(image, self.input_size)
            return to_pixel_array(square, self.pixel_layout, self.mean, self.std)
        except Exception as e:
            logger.warning(f"[ImageClassifier] pixel conversion failed: {e!r}")
            raise PixelConversionFailed() from e

    def predict_blocking(self, image: Image.Image, top_k: int) -> List[ImagePrediction]:
        pixels = self.prepare_input(image)
        output = self.model.predict({IMAGE_INPUT: pixels})
        if not isinstance(output, Mapping):
            raise NoPredictions()
        return rank_predictions(output.get(PROBS_OUTPUT), top_k)

    # ---------------------------
    # Async API
    # ---------------------------
    @staticmethod
    def validate(image: Any, top_k: Any) -> None:
        if not isinstance(image, Image.Image) or image.width <= 0 or image.height <= 0:
            raise InvalidInput()
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
            raise InvalidInput("top_k must be a positive integer.")

    async def classify(self, image: Image.Image, top_k: int = DEFAULT_TOP_K) -> List[ImagePrediction]:
        """
        Classify one image.

        Returns at most top_k predictions sorted by confidence, highest first.
        """
        self.validate(image, top_k)
        return await self._requests.call(ImageClassifierBackend.predict_blocking, image, top_k)

    async def classify_batch(
        self, images: Sequence[Image.Image], top_k: int = DEFAULT_TOP_K
    ) -> List[List[ImagePrediction]]:
        async def one(image: Image.Image) -> List[ImagePrediction]:
            return await self.classify(image, top_k)

        return await run_batch(one, images)

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

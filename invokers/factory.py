"""Wire configured backends into a MediaAnalyzer."""

import logging
from typing import Optional

from backends.image_classifier import ImageClassifierBackend
from backends.model_registry import ModelRegistry
from backends.sentiment_classifier import SentimentClassifierBackend
from invokers.coordinator import MediaAnalyzer
from utils.analyzer_config import AnalyzerConfig, get_analyzer_config

logger = logging.getLogger(__name__)


def create_media_analyzer(
    config: Optional[AnalyzerConfig] = None,
    registry: Optional[ModelRegistry] = None,
) -> MediaAnalyzer:
    """
    Load both backends and return a coordinator over them.

    Raises ModelLoadFailed if the image model cannot be loaded. A missing
    sentiment model only switches the text lane to the lexicon scorer.
    """
    cfg = config or get_analyzer_config()
    img = cfg.image_model

    image_backend = ImageClassifierBackend.from_resource(
        cfg.image_resource(),
        device=cfg.device,
        input_size=img.input_size,
        pixel_layout=img.pixel_layout,
        mean=img.mean,
        std=img.std,
        registry=registry,
    )
    try:
        sentiment_backend = SentimentClassifierBackend.from_resource(
            cfg.sentiment_resource(),
            device=cfg.device,
            max_length=cfg.sentiment_model.max_length,
            registry=registry,
        )
    except Exception:
        image_backend.close()
        raise

    logger.info(
        "[MediaAnalyzer] ready (sentiment path: %s)",
        "model" if sentiment_backend.uses_model else "lexicon",
    )
    return MediaAnalyzer(image_backend, sentiment_backend, default_top_k=cfg.default_top_k)

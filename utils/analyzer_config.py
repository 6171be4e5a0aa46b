"""
Analyzer configuration management.

Loads conf/analyzer.yml:
- Model root and device
- Image model artifact + input settings
- Sentiment model artifact (optional)

Env overrides:
  ANALYZER_CONFIG=path/to/analyzer.yml
  MODEL_ROOT=/basepath/to/models
  ANALYZER_DEVICE=auto|cpu|cuda|cuda:0
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from backends.base import ModelResource
from backends.utils import PIXEL_LAYOUTS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "conf/analyzer.yml"


@dataclass
class ImageModelConfig:
    name: str = "mobilenet_v2.pt"
    input_size: int = 224
    pixel_layout: str = "nchw"
    mean: Optional[List[float]] = None
    std: Optional[List[float]] = None


@dataclass
class SentimentModelConfig:
    name: str = ""          # empty -> lexicon scorer
    max_length: int = 256


@dataclass
class AnalyzerConfig:
    model_root: str = "models"
    device: str = "auto"
    default_top_k: int = 5
    image_model: ImageModelConfig = field(default_factory=ImageModelConfig)
    sentiment_model: SentimentModelConfig = field(default_factory=SentimentModelConfig)

    def image_resource(self) -> ModelResource:
        return ModelResource(root=self.model_root, name=self.image_model.name)

    def sentiment_resource(self) -> Optional[ModelResource]:
        if not self.sentiment_model.name:
            return None
        return ModelResource(root=self.model_root, name=self.sentiment_model.name)


def _float_list(value: Any, key: str) -> Optional[List[float]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ValueError(f"{key} must be a list of 3 numbers")
    return [float(v) for v in value]


def _positive_int(value: Any, key: str) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if n <= 0:
        raise ValueError(f"{key} must be positive, got {n}")
    return n


def parse_config(data: Optional[Dict[str, Any]]) -> AnalyzerConfig:
    """Validate a raw mapping (as loaded from YAML) into an AnalyzerConfig."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError("analyzer config must be a mapping")

    img = data.get("image_model") or {}
    snt = data.get("sentiment_model") or {}
    if not isinstance(img, dict) or not isinstance(snt, dict):
        raise ValueError("image_model and sentiment_model must be mappings")

    layout = str(img.get("pixel_layout", "nchw")).lower()
    if layout not in PIXEL_LAYOUTS:
        raise ValueError(f"image_model.pixel_layout must be one of {PIXEL_LAYOUTS}, got {layout!r}")

    image_cfg = ImageModelConfig(
        name=str(img.get("name", ImageModelConfig.name)),
        input_size=_positive_int(img.get("input_size", 224), "image_model.input_size"),
        pixel_layout=layout,
        mean=_float_list(img.get("mean"), "image_model.mean"),
        std=_float_list(img.get("std"), "image_model.std"),
    )
    sentiment_cfg = SentimentModelConfig(
        name=str(snt.get("name") or ""),
        max_length=_positive_int(snt.get("max_length", 256), "sentiment_model.max_length"),
    )

    return AnalyzerConfig(
        model_root=str(data.get("model_root", "models")),
        device=str(data.get("device", "auto")),
        default_top_k=_positive_int(data.get("default_top_k", 5), "default_top_k"),
        image_model=image_cfg,
        sentiment_model=sentiment_cfg,
    )


class AnalyzerConfigManager:
    """
    Manages analyzer configuration from conf/analyzer.yml.

    A missing file is not an error: built-in defaults apply.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or os.environ.get("ANALYZER_CONFIG") or DEFAULT_CONFIG_PATH)
        self.config: AnalyzerConfig = AnalyzerConfig()
        self._load_config()

    def _load_config(self):
        if self.config_path.exists():
            logger.info(f"[AnalyzerConfig] Loading configuration from {self.config_path}")
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f)
        else:
            logger.info(f"[AnalyzerConfig] {self.config_path} not found, using defaults")
            data = {}

        config = parse_config(data)

        model_root = (os.environ.get("MODEL_ROOT") or "").strip()
        if model_root:
            config.model_root = model_root
        device = (os.environ.get("ANALYZER_DEVICE") or "").strip()
        if device:
            config.device = device

        self.config = config
        logger.info(
            f"[AnalyzerConfig] model_root={config.model_root} device={config.device} "
            f"image={config.image_model.name} sentiment={config.sentiment_model.name or '<lexicon>'}"
        )

    def reload(self):
        logger.info("[AnalyzerConfig] Reloading configuration")
        self._load_config()


_config_manager: Optional[AnalyzerConfigManager] = None


def get_analyzer_config() -> AnalyzerConfig:
    """Get the global analyzer configuration."""
    global _config_manager
    if _config_manager is None:
        _config_manager = AnalyzerConfigManager()
    return _config_manager.config


def reload_analyzer_config() -> AnalyzerConfig:
    """Reload global configuration from disk."""
    global _config_manager
    if _config_manager is not None:
        _config_manager.reload()
    else:
        _config_manager = AnalyzerConfigManager()
    return _config_manager.config

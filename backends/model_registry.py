"""
Model registry.

Tracks which model artifacts the backends currently hold, and where.
Backends register on load and unregister on close.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class LoadedModel:
    """One model artifact currently held by a backend."""
    name: str          # backend-facing identifier, e.g. "image" / "sentiment"
    model_path: str
    kind: str          # "torchscript" | "transformers" | "lexicon"
    device: str = "cpu"
    loaded_at: float = field(default_factory=time.time)


class ModelRegistry:
    """
    Thread-safe registry of loaded models.
    """

    def __init__(self):
        self._loaded: Dict[str, LoadedModel] = {}
        self._lock = Lock()

    def register_model(self, name: str, model_path: str, kind: str, device: str = "cpu") -> LoadedModel:
        """
        Register a loaded model, replacing any previous entry with that name.

        Args:
            name: Model identifier
            model_path: Path the artifact was loaded from
            kind: Adapter kind
            device: Device the weights live on
        """
        with self._lock:
            model = LoadedModel(name=name, model_path=model_path, kind=kind, device=device)
            self._loaded[name] = model
        logger.info(
            f"[ModelRegistry] Registered model '{name}': "
            f"{os.path.basename(model_path) or kind} ({kind}) on {device}"
        )
        return model

    def unregister_model(self, name: str):
        with self._lock:
            model = self._loaded.pop(name, None)
        if model is None:
            logger.warning(f"[ModelRegistry] Model '{name}' not registered")
        else:
            logger.info(f"[ModelRegistry] Unregistered model '{name}'")

    def get_loaded_models(self) -> Dict[str, LoadedModel]:
        with self._lock:
            return dict(self._loaded)

    def get_model(self, name: str) -> Optional[LoadedModel]:
        with self._lock:
            return self._loaded.get(name)

    def is_loaded(self, name: str) -> bool:
        with self._lock:
            return name in self._loaded

    def stats(self) -> Dict[str, Any]:
        """Summary suitable for a debug panel."""
        now = time.time()
        with self._lock:
            models = [
                {
                    "name": m.name,
                    "model_path": m.model_path,
                    "kind": m.kind,
                    "device": m.device,
                    "uptime_s": round(now - m.loaded_at, 1),
                }
                for m in self._loaded.values()
            ]
        return {"models_loaded": len(models), "models": models}

    def clear(self):
        """Clear all registrations (does not unload anything)."""
        with self._lock:
            self._loaded.clear()
        logger.info("[ModelRegistry] Cleared all registrations")


# Global registry instance
_registry: Optional[ModelRegistry] = None


def get_model_registry() -> ModelRegistry:
    """Process-wide registry shared by backends that are not given one."""
    global _registry
    if _registry is None:
        _registry = ModelRegistry()
    return _registry

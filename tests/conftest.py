"""
Shared pytest fixtures and configuration for analyzer tests.
"""

import io
import os
import sys
import threading
from typing import Dict

import pytest
from PIL import Image

# Add project root to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from backends.model_registry import ModelRegistry


class FakeImageModel:
    """Image model returning a fixed probability map and recording its inputs."""

    def __init__(self, probs: Dict[str, float] = None, fail: Exception = None):
        self.probs = probs if probs is not None else {
            "golden retriever": 0.55,
            "labrador": 0.25,
            "dog": 0.1,
            "pet": 0.05,
            "animal": 0.03,
            "cat": 0.02,
        }
        self.fail = fail
        self.calls = []
        self.threads = []

    def predict(self, features):
        self.calls.append(features)
        self.threads.append(threading.current_thread().name)
        if self.fail is not None:
            raise self.fail
        return {"classLabelProbs": dict(self.probs)}


class FakeSentimentModel:
    def __init__(self, label="POSITIVE", probs=None, fail: Exception = None):
        self.label = label
        self.probs = probs
        self.fail = fail
        self.calls = []

    def predict(self, features):
        self.calls.append(features["text"])
        if self.fail is not None:
            raise self.fail
        out = {"label": self.label}
        if self.probs is not None:
            out["labelProbability"] = dict(self.probs)
        return out


@pytest.fixture
def registry():
    """Fresh model registry so tests never touch the global one."""
    return ModelRegistry()


@pytest.fixture
def fake_image_model():
    return FakeImageModel()


@pytest.fixture
def fake_sentiment_model():
    return FakeSentimentModel(label="POSITIVE", probs={"positive": 0.8, "negative": 0.15, "neutral": 0.05})


@pytest.fixture
def test_image_64():
    """Create a 64x64 test image."""
    return Image.new("RGB", (64, 64), color=(100, 150, 200))


@pytest.fixture
def test_image_wide():
    """Create a 300x100 test image."""
    return Image.new("RGB", (300, 100), color=(255, 0, 0))


@pytest.fixture
def test_image_bytes():
    """Create test image as PNG bytes."""
    img = Image.new("RGB", (64, 64), color="red")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def sample_texts():
    return [
        "I love this app!",
        "This is terrible",
        "It is a chair",
        "Excellent work!",
        "Worst product ever",
    ]


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")


def pytest_collection_modifyitems(config, items):
    """Modify test collection."""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)

        if "slow" in item.name.lower() or "stress" in item.name.lower():
            item.add_marker(pytest.mark.slow)

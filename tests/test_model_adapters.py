"""
Tests for the torch / transformers model adapters and analyzer wiring.

The TorchScript tests build a tiny traced network on disk; the transformers
tests patch the Auto* loaders so no checkpoint download is needed.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import torch
from PIL import Image

from backends.base import ModelResource
from backends.errors import ModelLoadFailed, PredictionFailed
from backends.torch_model import load_image_model, read_labels, resolve_device
from backends.transformers_model import TransformersSentimentModel, load_sentiment_model
from invokers.factory import create_media_analyzer
from utils.analyzer_config import AnalyzerConfig, ImageModelConfig, SentimentModelConfig

TINY_LABELS = ["cat", "dog", "fox"]


def save_tiny_model(root, name="tiny.pt", labels=TINY_LABELS):
    torch.manual_seed(0)
    net = torch.nn.Sequential(
        torch.nn.AdaptiveAvgPool2d(1),
        torch.nn.Flatten(),
        torch.nn.Linear(3, 3),
    ).eval()
    traced = torch.jit.trace(net, torch.zeros(1, 3, 8, 8))
    path = root / name
    traced.save(str(path))
    if labels is not None:
        stem = name.rsplit(".", 1)[0]
        (root / f"{stem}.labels.txt").write_text("\n".join(labels) + "\n\n")
    return ModelResource(root=str(root), name=name)


@pytest.fixture
def tiny_resource(tmp_path):
    return save_tiny_model(tmp_path)


class TestTorchScriptAdapter:
    def test_resolve_device(self):
        assert resolve_device("CPU") == "cpu"
        assert resolve_device("auto") in ("cpu", "cuda")
        assert resolve_device(None) in ("cpu", "cuda")

    def test_read_labels_skips_blank_lines(self, tiny_resource):
        assert read_labels(tiny_resource.labels_path) == TINY_LABELS

    def test_predict_returns_probability_map(self, tiny_resource):
        model = load_image_model(tiny_resource, device="cpu")
        out = model.predict({"image": np.random.rand(1, 3, 8, 8).astype(np.float32)})
        probs = out["classLabelProbs"]
        assert set(probs) == set(TINY_LABELS)
        assert sum(probs.values()) == pytest.approx(1.0, abs=1e-5)
        assert all(0.0 <= p <= 1.0 for p in probs.values())

    def test_missing_labels_file_uses_indices(self, tmp_path):
        resource = save_tiny_model(tmp_path, labels=None)
        model = load_image_model(resource, device="cpu")
        out = model.predict({"image": np.zeros((1, 3, 8, 8), dtype=np.float32)})
        assert set(out["classLabelProbs"]) == {"0", "1", "2"}

    def test_label_count_mismatch(self, tmp_path):
        resource = save_tiny_model(tmp_path, labels=["only", "two"])
        model = load_image_model(resource, device="cpu")
        with pytest.raises(PredictionFailed):
            model.predict({"image": np.zeros((1, 3, 8, 8), dtype=np.float32)})

    def test_missing_artifact(self, tmp_path):
        with pytest.raises(ModelLoadFailed):
            load_image_model(ModelResource(root=str(tmp_path), name="absent.pt"))

    def test_unset_name(self, tmp_path):
        with pytest.raises(ModelLoadFailed):
            load_image_model(ModelResource(root=str(tmp_path), name=""))


@pytest.fixture
def fake_hf():
    tokenizer = MagicMock(name="tokenizer")
    tokenizer.return_value = {"input_ids": torch.tensor([[101, 2307, 102]])}

    model = MagicMock(name="model")
    model.config.id2label = {0: "NEGATIVE", 1: "POSITIVE"}
    model.return_value.logits = torch.tensor([[-1.0, 2.0]])
    return tokenizer, model


class TestTransformersAdapter:
    def test_predict(self, fake_hf):
        tokenizer, model = fake_hf
        adapter = TransformersSentimentModel(model, tokenizer, device="cpu", max_length=32)
        out = adapter.predict({"text": "great"})

        assert out["label"] == "positive"
        assert out["labelProbability"]["positive"] > out["labelProbability"]["negative"]
        assert sum(out["labelProbability"].values()) == pytest.approx(1.0)
        tokenizer.assert_called_once_with("great", truncation=True, max_length=32, return_tensors="pt")
        model.eval.assert_called_once()

    def test_missing_id2label_uses_indices(self, fake_hf):
        tokenizer, model = fake_hf
        model.config.id2label = None
        out = TransformersSentimentModel(model, tokenizer).predict({"text": "x"})
        assert out["label"] == "1"

    def test_load_from_directory(self, tmp_path, fake_hf):
        tokenizer, model = fake_hf
        (tmp_path / "sst2").mkdir()
        resource = ModelResource(root=str(tmp_path), name="sst2")
        with patch("backends.transformers_model.AutoTokenizer") as auto_tok, \
                patch("backends.transformers_model.AutoModelForSequenceClassification") as auto_model:
            auto_tok.from_pretrained.return_value = tokenizer
            auto_model.from_pretrained.return_value = model
            adapter = load_sentiment_model(resource, device="cpu", max_length=64)

        assert isinstance(adapter, TransformersSentimentModel)
        assert adapter.max_length == 64
        auto_tok.from_pretrained.assert_called_once_with(resource.path)

    @pytest.mark.parametrize("id2label", [
        {0: "LABEL_0", 1: "LABEL_1", 2: "LABEL_2"},
        {0: "1 star", 1: "5 stars"},
        {},
    ])
    def test_checkpoint_with_foreign_labels_falls_back(self, tmp_path, fake_hf, id2label):
        tokenizer, model = fake_hf
        model.config.id2label = id2label
        (tmp_path / "generic").mkdir()
        resource = ModelResource(root=str(tmp_path), name="generic")
        with patch("backends.transformers_model.AutoTokenizer") as auto_tok, \
                patch("backends.transformers_model.AutoModelForSequenceClassification") as auto_model:
            auto_tok.from_pretrained.return_value = tokenizer
            auto_model.from_pretrained.return_value = model
            assert load_sentiment_model(resource, device="cpu") is None

    def test_label_names(self, fake_hf):
        tokenizer, model = fake_hf
        adapter = TransformersSentimentModel(model, tokenizer)
        assert adapter.label_names == {"negative", "positive"}

    def test_missing_artifact_returns_none(self, tmp_path):
        assert load_sentiment_model(ModelResource(root=str(tmp_path), name="absent")) is None

    def test_load_failure_returns_none(self, tmp_path):
        (tmp_path / "broken").mkdir()
        resource = ModelResource(root=str(tmp_path), name="broken")
        with patch("backends.transformers_model.AutoTokenizer") as auto_tok:
            auto_tok.from_pretrained.side_effect = OSError("no tokenizer files")
            assert load_sentiment_model(resource, device="cpu") is None


class TestCreateMediaAnalyzerIntegration:
    def make_config(self, root, sentiment_name=""):
        return AnalyzerConfig(
            model_root=str(root),
            device="cpu",
            default_top_k=2,
            image_model=ImageModelConfig(name="tiny.pt", input_size=8),
            sentiment_model=SentimentModelConfig(name=sentiment_name),
        )

    @pytest.mark.asyncio
    async def test_end_to_end_with_tiny_model(self, tmp_path, registry):
        save_tiny_model(tmp_path)
        analyzer = create_media_analyzer(self.make_config(tmp_path), registry=registry)
        try:
            assert registry.get_model("image").kind == "torchscript"
            assert registry.get_model("sentiment").kind == "lexicon"

            await analyzer.classify_image(Image.new("RGB", (40, 30), (200, 10, 10)))
            await analyzer.analyze_text("This is awful")

            assert len(analyzer.image_predictions) == 2
            assert {p.label for p in analyzer.image_predictions} <= set(TINY_LABELS)
            assert analyzer.sentiment.label == "negative"
            assert analyzer.error_message is None
        finally:
            analyzer.close()
        assert registry.get_loaded_models() == {}

    def test_missing_image_model_is_fatal(self, tmp_path, registry):
        with pytest.raises(ModelLoadFailed):
            create_media_analyzer(self.make_config(tmp_path), registry=registry)
        assert registry.get_loaded_models() == {}

    def test_missing_sentiment_model_falls_back_to_lexicon(self, tmp_path, registry):
        save_tiny_model(tmp_path)
        analyzer = create_media_analyzer(self.make_config(tmp_path, "absent-sst2"), registry=registry)
        try:
            assert analyzer.sentiment_backend.uses_model is False
        finally:
            analyzer.close()

    def test_sentiment_failure_closes_image_backend(self, tmp_path, registry):
        save_tiny_model(tmp_path)
        with patch(
            "invokers.factory.SentimentClassifierBackend.from_resource",
            side_effect=RuntimeError("boom"),
        ):
            with pytest.raises(RuntimeError):
                create_media_analyzer(self.make_config(tmp_path), registry=registry)
        assert not registry.is_loaded("image")

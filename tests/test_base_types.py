"""
Tests for backends/base.py and backends/errors.py: result types and error taxonomy.
"""

import dataclasses

import pytest

from backends.base import ImagePrediction, ModelResource, SentimentResult
from backends.errors import (
    AnalyzerError,
    EmptyText,
    InvalidInput,
    ModelLoadFailed,
    NoPredictions,
    PixelConversionFailed,
    PredictionFailed,
    UnsupportedLanguage,
    coerce_error,
)


class TestImagePrediction:
    def test_confidence_is_clamped(self):
        assert ImagePrediction("a", 1.7).confidence == 1.0
        assert ImagePrediction("a", -0.2).confidence == 0.0

    def test_confidence_percent(self):
        assert ImagePrediction("dog", 0.9512).confidence_percent == "95.1%"

    def test_is_immutable(self):
        p = ImagePrediction("dog", 0.5)
        with pytest.raises(dataclasses.FrozenInstanceError):
            p.label = "cat"

    def test_ids_are_unique(self):
        a = ImagePrediction("dog", 0.5)
        b = ImagePrediction("dog", 0.5)
        assert a.id != b.id
        assert a == b  # id is not part of equality

    def test_to_dict(self):
        d = ImagePrediction("dog", 0.5).to_dict()
        assert d["label"] == "dog"
        assert d["confidence"] == 0.5
        assert "id" in d


class TestSentimentResult:
    @pytest.mark.parametrize("label,emoji", [
        ("positive", "\U0001F60A"),
        ("NEGATIVE", "\U0001F614"),
        ("Neutral", "\U0001F610"),
        ("mixed", "\U0001F610"),
    ])
    def test_emoji_keyed_by_label(self, label, emoji):
        assert SentimentResult(label, 0.7).emoji == emoji

    def test_label_stored_lowercase(self):
        assert SentimentResult("POSITIVE", 0.9).label == "positive"

    def test_confidence_percent_one_decimal(self):
        r = SentimentResult("positive", 0.8888)
        assert r.confidence_percent == "88.9%"
        assert r.confidence_percent.endswith("%")

    def test_raw_score_optional(self):
        assert SentimentResult("neutral", 0.5).raw_score is None
        assert "raw_score" not in SentimentResult("neutral", 0.5).to_dict()
        assert SentimentResult("neutral", 0.5, raw_score=0.02).to_dict()["raw_score"] == 0.02

    def test_raw_score_clamped(self):
        assert SentimentResult("positive", 1.0, raw_score=3.0).raw_score == 1.0


class TestModelResource:
    def test_paths(self, tmp_path):
        res = ModelResource(root=str(tmp_path), name="net.pt")
        assert res.path == str(tmp_path / "net.pt")
        assert res.labels_path == str(tmp_path / "net.labels.txt")
        assert res.exists() is False
        (tmp_path / "net.pt").write_bytes(b"x")
        assert res.exists() is True

    def test_empty_name_never_exists(self, tmp_path):
        assert ModelResource(root=str(tmp_path), name="").exists() is False


class TestErrors:
    @pytest.mark.parametrize("cls,message", [
        (EmptyText, "Text cannot be empty."),
        (InvalidInput, "The provided image is invalid or empty."),
        (ModelLoadFailed, "Failed to load model."),
        (PixelConversionFailed, "Failed to create pixel buffer from image."),
        (PredictionFailed, "Model prediction failed."),
        (NoPredictions, "No predictions were generated."),
        (UnsupportedLanguage, "Unsupported language for sentiment analysis."),
    ])
    def test_default_messages(self, cls, message):
        err = cls()
        assert isinstance(err, AnalyzerError)
        assert err.message == message
        assert str(err) == message

    def test_custom_message(self):
        assert InvalidInput("top_k must be a positive integer.").message.startswith("top_k")

    def test_coerce_keeps_taxonomy_errors(self):
        err = NoPredictions()
        assert coerce_error(err) is err

    def test_coerce_wraps_foreign_errors(self):
        cause = KeyError("classLabelProbs")
        err = coerce_error(cause)
        assert isinstance(err, PredictionFailed)
        assert err.__cause__ is cause

"""
Error taxonomy shared by the inference backends.

Every failure that crosses the async request boundary is one of these.
Anything else raised inside a backend is coerced to PredictionFailed.
"""

from typing import Optional


class AnalyzerError(Exception):
    """Base class. `message` is safe to show to the user."""

    kind = "analyzer_error"
    default_message = "Analysis failed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class EmptyText(AnalyzerError):
    kind = "empty_text"
    default_message = "Text cannot be empty."


class InvalidInput(AnalyzerError):
    kind = "invalid_input"
    default_message = "The provided image is invalid or empty."


class ModelLoadFailed(AnalyzerError):
    kind = "model_load_failed"
    default_message = "Failed to load model."


class PixelConversionFailed(AnalyzerError):
    kind = "pixel_conversion_failed"
    default_message = "Failed to create pixel buffer from image."


class PredictionFailed(AnalyzerError):
    kind = "prediction_failed"
    default_message = "Model prediction failed."


class NoPredictions(AnalyzerError):
    kind = "no_predictions"
    default_message = "No predictions were generated."


class UnsupportedLanguage(AnalyzerError):
    # Declared for a language gate; nothing raises it yet.
    kind = "unsupported_language"
    default_message = "Unsupported language for sentiment analysis."


def coerce_error(exc: BaseException) -> AnalyzerError:
    """Return `exc` if it already belongs to the taxonomy, else wrap it."""
    if isinstance(exc, AnalyzerError):
        return exc
    wrapped = PredictionFailed()
    wrapped.__cause__ = exc
    return wrapped

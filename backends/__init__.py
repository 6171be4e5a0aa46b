"""Inference backends: model adapters, image and sentiment classifiers."""

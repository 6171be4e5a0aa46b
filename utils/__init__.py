"""Configuration, logging and image format helpers."""

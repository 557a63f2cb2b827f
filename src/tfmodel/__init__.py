"""Fetch, cache and revalidate TensorFlow.js web-format models."""

from __future__ import annotations

__version__ = "0.1.0"

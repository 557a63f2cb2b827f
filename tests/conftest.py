"""Shared fixtures: a representative TensorFlow.js graph-model manifest."""

from __future__ import annotations

import pytest

SHARD_1 = "group1-shard1of2.bin"
SHARD_2 = "group1-shard2of2.bin"


@pytest.fixture()
def manifest() -> dict:
    return {
        "format": "graph-model",
        "generatedBy": "2.11.0",
        "convertedBy": "TensorFlow.js Converter v4.2.0",
        "modelTopology": {"node": [{"name": "input", "op": "Placeholder"}]},
        "weightsManifest": [
            {
                "paths": [SHARD_1, SHARD_2],
                "weights": [{"name": "conv/kernel", "shape": [3, 3, 3, 32], "dtype": "float32"}],
            }
        ],
    }


@pytest.fixture()
def shard_bytes() -> dict[str, bytes]:
    return {SHARD_1: b"\x00\x01\x02\x03" * 8, SHARD_2: b"\xff\xfe" * 16}

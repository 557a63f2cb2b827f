from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WeightsGroup(BaseModel):
    """A group of weight shards in a TensorFlow.js weights manifest."""

    model_config = ConfigDict(extra="allow")

    paths: list[str]
    weights: list[dict] = []


class ModelManifest(BaseModel):
    """The parts of a TensorFlow.js model.json the cache needs.

    ``modelTopology`` and any other keys are left to the model-loading engine.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    format: str | None = None
    generated_by: str | None = Field(default=None, alias="generatedBy")
    converted_by: str | None = Field(default=None, alias="convertedBy")
    weights_manifest: list[WeightsGroup] | None = Field(default=None, alias="weightsManifest")

    @property
    def shard_paths(self) -> list[str]:
        """Every shard path across all weight groups, first occurrence order."""
        if not self.weights_manifest:
            return []
        seen: dict[str, None] = {}
        for group in self.weights_manifest:
            for path in group.paths:
                seen.setdefault(path, None)
        return list(seen)

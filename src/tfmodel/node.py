"""tf-model node: binds the model cache to a message-passing host runtime.

The host runtime and the model-loading engine are both injected. The node
never inherits from a host class; it only calls the capabilities declared by
``NodeRuntime``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Literal, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from pathlib import Path

    from tfmodel.cache import ModelCache

log = structlog.get_logger()


class NodeConfig(BaseModel):
    """Per-node configuration delivered by the host at instantiation."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    id: str
    type: str = "tf-model"
    name: str = ""
    model_url: str = Field(default="", alias="modelURL")


class NodeStatus(BaseModel):
    fill: Literal["red", "green", "yellow", "blue", "grey"]
    shape: Literal["ring", "dot"]
    text: str


LOADING = NodeStatus(fill="red", shape="ring", text="loading model...")
READY = NodeStatus(fill="green", shape="dot", text="model is ready")


class Model(Protocol):
    async def execute(self, inputs: Mapping[str, Any]) -> Any: ...

    def dispose(self) -> None: ...


class ModelLoader(Protocol):
    async def load(self, path: Path) -> Model: ...


class NodeRuntime(Protocol):
    """Capabilities the host runtime provides to a node."""

    def on_input(self, handler: Callable[[dict[str, Any]], Awaitable[None]]) -> None: ...

    def on_close(self, handler: Callable[[Callable[[], None]], None]) -> None: ...

    def report_status(self, status: NodeStatus) -> None: ...

    def log(self, message: str) -> None: ...

    def send(self, message: dict[str, Any]) -> None: ...


class TFModelNode:
    """Resolve, load and run one TensorFlow.js model for a host node."""

    def __init__(
        self,
        config: NodeConfig,
        runtime: NodeRuntime,
        cache: ModelCache,
        loader: ModelLoader,
    ) -> None:
        self.config = config
        self.model: Model | None = None
        self._runtime = runtime
        self._cache = cache
        self._loader = loader
        runtime.on_input(self.handle_input)
        runtime.on_close(self.handle_close)

    @property
    def model_url(self) -> str:
        return self.config.model_url.strip()

    async def start(self) -> None:
        """Resolve and load the configured model. Failures become a red status."""
        if not self.model_url:
            log.info("node_no_model_url", node_id=self.config.id)
            return

        try:
            model_path = await self._cache.resolve(self.model_url)
            self._runtime.report_status(LOADING)
            self._runtime.log(f"loading model from: {self.model_url}")
            self.model = await self._loader.load(model_path)
        except Exception as exc:
            # ModelCacheError, or whatever the loading engine raises
            self._fail(exc)
            return

        self._runtime.report_status(READY)
        self._runtime.log("model loaded")

    def _fail(self, exc: Exception) -> None:
        log.warning(
            "node_model_load_failed", node_id=self.config.id, url=self.model_url, error=str(exc)
        )
        self._runtime.report_status(NodeStatus(fill="red", shape="ring", text=str(exc)))
        self._runtime.log(f"failed to load model from {self.model_url}: {exc}")

    async def handle_input(self, msg: dict[str, Any]) -> None:
        if self.model is None:
            log.warning("node_input_dropped", node_id=self.config.id, reason="no model loaded")
            return

        inputs: Mapping[str, Any] = msg["payload"]
        result = await self.model.execute(inputs)
        for tensor in inputs.values():
            dispose = getattr(tensor, "dispose", None)
            if dispose is not None:
                dispose()
        self._runtime.send({"payload": result})

    def handle_close(self, done: Callable[[], None]) -> None:
        if self.model is not None:
            self.model.dispose()
            self.model = None
        done()

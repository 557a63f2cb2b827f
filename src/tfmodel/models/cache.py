from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CacheEntry(BaseModel):
    """One cached model, keyed by its manifest URL in models.json.

    Field aliases keep the on-disk layout written by the Node-RED tf-model node:
    ``{"<url>": {"hash": ..., "lastModified": ..., "filename": ...}}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(exclude=True)  # Index key, not repeated inside the record
    content_hash: str = Field(alias="hash")  # hash_code(url), the cache subdirectory name
    last_modified: str | None = Field(default=None, alias="lastModified")  # Verbatim header
    entry_filename: str = Field(alias="filename")
    # False between persisting the entry and writing its last shard.
    # Records written before this field existed load as complete.
    complete: bool = True

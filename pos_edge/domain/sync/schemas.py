# pos_edge/domain/sync/schemas.py
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel


class Change(BaseModel):
    """One remote change: ``delete`` carries an id, anything else a document."""

    type: str = "document"
    id: Optional[str] = None
    document: Optional[dict] = None

    @model_validator(mode="after")
    def check_target(self):
        if self.type == "delete":
            if not self.id and not (self.document or {}).get("id"):
                raise ValueError("delete change requires an id")
        elif not (self.document or {}).get("id"):
            raise ValueError("document change requires a document with an id")
        return self


class PullResponse(BaseModel):
    changes: List[Change] = Field(default_factory=list)
    next_cursor: Optional[Any] = None
    has_more: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SyncResult(BaseModel):
    pushed: int = 0
    pulled: int = 0


class SyncStatus(BaseModel):
    running: bool
    online: bool
    last_sync_at: Optional[int] = None
    last_error: Optional[str] = None
    pending_operations: int = 0

    class Config:
        alias_generator = to_camel
        populate_by_name = True

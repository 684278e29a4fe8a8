# pos_edge/domain/printing/schemas.py
import enum
from typing import Any, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from pos_edge.db.models.print_jobs import JobStatus


class JobOutcome(str, enum.Enum):
    PRINTED = "printed"
    RETRY = "retry"
    FAILED = "failed"


class PrintJobCreate(BaseModel):
    destination: str
    payload: Optional[Any] = None
    priority: int = 0
    id: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class PrintJobOut(BaseModel):
    id: str
    destination: str
    payload: Optional[Any] = None
    status: JobStatus
    priority: int
    attempts: int
    next_run_at: int
    created_at: int
    error: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        use_enum_values = True

    @classmethod
    def from_row(cls, row) -> "PrintJobOut":
        return cls(
            id=row.id,
            destination=row.destination,
            payload=row.payload,
            status=row.status,
            priority=row.priority,
            attempts=row.attempts,
            next_run_at=row.next_run_at,
            created_at=row.created_at,
            error=row.error,
        )

    def to_event(self) -> dict:
        return self.model_dump(by_alias=True)

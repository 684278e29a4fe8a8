# pos_edge/api/v1/routes_print_jobs.py
from typing import List, Optional

from fastapi import APIRouter, Depends

from pos_edge.api.deps import get_printer
from pos_edge.db.models.print_jobs import JobStatus
from pos_edge.domain.printing.schemas import PrintJobCreate, PrintJobOut
from pos_edge.domain.printing.service import PrintJobProcessor


router = APIRouter(prefix="/api/v1/print-jobs", tags=["print-jobs"])


@router.get("", response_model=List[PrintJobOut], response_model_by_alias=True)
async def list_jobs_endpoint(
    status: Optional[JobStatus] = None,
    printer: PrintJobProcessor = Depends(get_printer),
):
    return await printer.list_jobs(status.value if status else None)


@router.post("", response_model=PrintJobOut, response_model_by_alias=True, status_code=201)
async def enqueue_job_endpoint(
    payload: PrintJobCreate,
    printer: PrintJobProcessor = Depends(get_printer),
):
    return await printer.enqueue(payload)

"""Common schemas for the timesheet API."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ErrorResponse(BaseModel):
    """Body of every rejected request, as produced by `TimesheetError.to_dict()`.

    Context keys vary by error; the common ones are declared here.
    """
    model_config = ConfigDict(extra="allow")

    error: str
    detail: str
    timesheet_id: Optional[str] = None
    current_status: Optional[str] = None
    event: Optional[str] = None
    cutoff: Optional[datetime] = None


ERROR_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Actor may not perform the action"},
    404: {"model": ErrorResponse, "description": "Unknown timesheet or delegation"},
    409: {"model": ErrorResponse, "description": "State changed; refresh and retry"},
    422: {"model": ErrorResponse, "description": "Invalid input or submission window not open"},
}

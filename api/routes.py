from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple

from fastapi import APIRouter, HTTPException, Query, Response

import timeclock
from models.schema import (
    ClockActionRequest, ClockActionResult, Employee, EmployeeCreate, EmployeeUpdate,
    PayrollReport, Punch, Timecard,
)
from utils.errors import InvalidState, NotFound, ValidationError

router = APIRouter(prefix="/clock", tags=["clock"])


def _parse_date(s: str, end_of_day: bool = False) -> datetime:
    """Accept YYYY-MM-DD or a full ISO datetime; naive values are UTC.

    A bare date means the start of that UTC day, or its last millisecond
    when ``end_of_day`` is set.
    """
    s = s.strip()
    try:
        d = date.fromisoformat(s)
    except ValueError:
        pass
    else:
        t = time(23, 59, 59, 999000) if end_of_day else time.min
        return datetime.combine(d, t, tzinfo=timezone.utc)
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid date: {s!r}")
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _date_range(start_date: Optional[str], end_date: Optional[str]) -> Tuple[datetime, datetime]:
    if not start_date or not end_date:
        raise ValidationError("Start date and end date are required")
    return _parse_date(start_date), _parse_date(end_date, end_of_day=True)


@router.post("/action", response_model=ClockActionResult)
def clock_action(payload: ClockActionRequest):
    if not payload.employee_id:
        raise HTTPException(status_code=400, detail="Employee ID is required")
    try:
        return timeclock.perform_clock_action(payload.employee_id, device_id=payload.device_id)
    except (NotFound, InvalidState) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/timecard/{employee_id}", response_model=Timecard)
def timecard(
    employee_id: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    """Timecard for one employee. A date-only endDate includes that whole UTC day."""
    try:
        start, end = _date_range(start_date, end_date)
        return timeclock.compute_timecard(employee_id, start, end)
    except (NotFound, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/export", response_model=PayrollReport)
def export_hours(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    """Payroll rows for every employee. A date-only endDate includes that whole UTC day."""
    try:
        start, end = _date_range(start_date, end_date)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return timeclock.export_all_hours(start, end)


@router.get("/logs", response_model=List[Punch])
def clock_logs(employee_id: Optional[str] = Query(None, alias="employeeId")):
    return timeclock.list_clock_logs(employee_id)


@router.get("/employees", response_model=List[Employee])
def list_employees():
    return timeclock.list_employees()


@router.post("/employees", response_model=Employee, status_code=201)
def create_employee(payload: EmployeeCreate):
    try:
        return timeclock.create_employee(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/employees/{employee_id}", response_model=Employee)
def update_employee(employee_id: str, payload: EmployeeUpdate):
    try:
        return timeclock.update_employee(employee_id, payload)
    except NotFound:
        raise HTTPException(status_code=404, detail="Employee not found")


@router.delete("/employees/{employee_id}", status_code=204)
def delete_employee(employee_id: str):
    try:
        timeclock.delete_employee(employee_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Employee not found")
    return Response(status_code=204)

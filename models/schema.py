from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Employee(CamelModel):
    id: str
    name: str
    pin: Optional[str] = None
    pay_rate: Decimal = Field(ge=0)
    status: str = "inactive"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EmployeeCreate(CamelModel):
    id: Optional[str] = None
    name: str
    pin: Optional[str] = None
    pay_rate: Decimal = Field(ge=0)


class EmployeeUpdate(CamelModel):
    name: Optional[str] = None
    pin: Optional[str] = None
    pay_rate: Optional[Decimal] = Field(default=None, ge=0)


class Punch(CamelModel):
    id: str
    employee_id: str
    type: str
    timestamp: int  # epoch milliseconds
    device_id: Optional[str] = None


class ClockActionRequest(CamelModel):
    employee_id: Optional[str] = None
    device_id: Optional[str] = None


class ClockActionResult(CamelModel):
    employee: Employee
    status_label: str
    punch_event: Punch


class DailyReport(CamelModel):
    logs: List[Punch] = []
    working_time: int = 0
    lunch_time: int = 0


class Timecard(CamelModel):
    employee: Optional[Employee] = None
    daily_report: Dict[str, DailyReport]
    total_working_time: int
    total_pay: str
    start_date: str
    end_date: str


class PayrollRow(CamelModel):
    employee_id: str
    employee_name: str
    pay_rate: Decimal
    total_hours: str
    total_pay: str
    daily_breakdown: Dict[str, DailyReport]
    error: Optional[str] = None


class PayrollReport(CamelModel):
    start_date: str
    end_date: str
    employees: List[PayrollRow]

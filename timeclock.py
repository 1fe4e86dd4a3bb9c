import logging
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

import settings
from models.schema import (
    ClockActionResult, DailyReport, Employee, EmployeeCreate, EmployeeUpdate,
    PayrollReport, PayrollRow, Punch, Timecard,
)
from utils import helper
from utils.errors import InvalidState, NotFound, ValidationError

STATUS_INACTIVE = "inactive"
STATUS_WORKING = "working"
STATUS_ON_LUNCH = "on-lunch"

CLOCK_IN = "clock-in"
CLOCK_OUT = "clock-out"
LUNCH_OUT = "lunch-out"
LUNCH_IN = "lunch-in"

MS_PER_HOUR = 60 * 60 * 1000
MS_PER_DAY = 24 * MS_PER_HOUR
CENTS = Decimal("0.01")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


def utc_date(ms: int) -> str:
    return (EPOCH + timedelta(milliseconds=ms)).date().isoformat()


def to_hours(ms: int) -> Decimal:
    return Decimal(ms) / Decimal(MS_PER_HOUR)


def format_money(value: Decimal) -> str:
    return str(value.quantize(CENTS, rounding=ROUND_HALF_UP))


def last_punch_type(employee_id: str) -> Optional[str]:
    last_punch = helper.get_last_punch(employee_id)
    return last_punch["type"] if last_punch else None


def next_transition(status: str, last_type: Optional[str]) -> Tuple[str, str, str]:
    """Return (next status, punch type, label) for the current status.

    ``working`` is entered both by clocking in and by ending lunch, so the
    type of the employee's last punch picks between starting lunch and
    clocking out.
    """
    if status == STATUS_INACTIVE:
        return STATUS_WORKING, CLOCK_IN, "Clocked In"
    if status == STATUS_WORKING:
        if last_type == LUNCH_IN:
            return STATUS_INACTIVE, CLOCK_OUT, "Clocked Out"
        return STATUS_ON_LUNCH, LUNCH_OUT, "Started Lunch"
    if status == STATUS_ON_LUNCH:
        return STATUS_WORKING, LUNCH_IN, "Ended Lunch"
    raise InvalidState(f"Invalid employee status: {status!r}")


def perform_clock_action(employee_id: str, timestamp: Optional[int] = None,
                         device_id: Optional[str] = None) -> ClockActionResult:
    if helper.get_employee(employee_id) is None:
        logging.warning(f"Clock action for unknown employee_id: {employee_id}")
        raise NotFound(f"Employee {employee_id} not found")

    with helper.employee_lock(employee_id):
        # Deleted while waiting for the lock.
        employee = helper.get_employee(employee_id)
        if employee is None:
            helper.drop_employee_lock(employee_id)
            logging.warning(f"Clock action for deleted employee_id: {employee_id}")
            raise NotFound(f"Employee {employee_id} not found")

        status = employee["status"]
        last_type = last_punch_type(employee_id) if status == STATUS_WORKING else None
        try:
            next_status, punch_type, label = next_transition(status, last_type)
        except InvalidState:
            logging.error(f"Corrupt status {status!r} for employee_id: {employee_id}")
            raise

        with helper.transaction():
            updated = helper.update_employee_status(employee_id, next_status)
            punch = helper.append_punch({
                "employee_id": employee_id,
                "type": punch_type,
                "timestamp": now_ms() if timestamp is None else timestamp,
                "device_id": device_id,
            })

    logging.info(f"{label}: employee_id={employee_id} status {status} -> {next_status}")
    return ClockActionResult(
        employee=Employee(**updated),
        status_label=label,
        punch_event=Punch(**punch),
    )


def replay_day(punches: List[Punch], close_at: Optional[int] = None) -> Tuple[int, int]:
    """Replay one day's punches (ascending) into (working ms, lunch ms).

    A punch whose opening punch is missing adds nothing. A working segment
    still open after the last punch is credited up to ``close_at`` when
    given, otherwise dropped.
    """
    working = lunch = 0
    clock_in_time = None
    lunch_out_time = None
    open_segment = False

    for punch in punches:
        ts = punch.timestamp
        if punch.type == CLOCK_IN:
            clock_in_time = ts
            open_segment = True
        elif punch.type == LUNCH_OUT:
            if clock_in_time is not None:
                working += ts - clock_in_time
                lunch_out_time = ts
            open_segment = False
        elif punch.type == LUNCH_IN:
            if lunch_out_time is not None:
                lunch += ts - lunch_out_time
                clock_in_time = ts
                open_segment = True
        elif punch.type == CLOCK_OUT:
            if clock_in_time is not None:
                working += ts - clock_in_time
            open_segment = False

    if open_segment and close_at is not None and close_at > clock_in_time:
        working += close_at - clock_in_time
    return working, lunch


def build_daily_report(punches: List[Punch], range_end: Optional[int] = None) -> Dict[str, DailyReport]:
    by_day: Dict[str, List[Punch]] = {}
    for punch in sorted(punches, key=lambda p: p.timestamp):
        by_day.setdefault(utc_date(punch.timestamp), []).append(punch)

    report = {}
    for day, logs in by_day.items():
        close_at = None
        if range_end is not None:
            day_start = logs[0].timestamp - logs[0].timestamp % MS_PER_DAY
            close_at = min(day_start + MS_PER_DAY, range_end)
        working, lunch = replay_day(logs, close_at)
        report[day] = DailyReport(logs=logs, working_time=working, lunch_time=lunch)
    return report


def build_timecard(employee: Optional[Employee], punches: List[Punch], start: datetime, end: datetime,
                   unterminated_policy: Optional[str] = None) -> Timecard:
    """Assemble a timecard from punches already limited to [start, end].

    ``employee`` may be None for punches whose employee record is gone; the
    pay rate is then taken as zero.
    """
    policy = unterminated_policy or settings.UNTERMINATED_SHIFT_POLICY
    if policy not in (settings.POLICY_DROP, settings.POLICY_RANGE_END):
        raise ValidationError(f"Unknown unterminated shift policy: {policy!r}")

    start_ms, end_ms = to_ms(start), to_ms(end)
    range_end = end_ms if policy == settings.POLICY_RANGE_END else None
    daily_report = build_daily_report(punches, range_end)
    total_working_time = sum(day.working_time for day in daily_report.values())
    pay_rate = employee.pay_rate if employee else Decimal("0")

    return Timecard(
        employee=employee,
        daily_report=daily_report,
        total_working_time=total_working_time,
        total_pay=format_money(to_hours(total_working_time) * pay_rate),
        start_date=utc_date(start_ms),
        end_date=utc_date(end_ms),
    )


def compute_timecard(employee_id: str, start: datetime, end: datetime,
                     unterminated_policy: Optional[str] = None) -> Timecard:
    employee = helper.get_employee(employee_id)
    if employee is None:
        raise NotFound(f"Employee {employee_id} not found")
    start_ms, end_ms = to_ms(start), to_ms(end)
    if start_ms > end_ms:
        raise ValidationError("Start date must not be after end date")

    punches = [Punch(**p) for p in helper.list_punches(employee_id, start_ms, end_ms)]
    return build_timecard(Employee(**employee), punches, start, end, unterminated_policy)


def export_all_hours(start: datetime, end: datetime, isolate_failures: Optional[bool] = None,
                     unterminated_policy: Optional[str] = None) -> PayrollReport:
    if isolate_failures is None:
        isolate_failures = settings.PAYROLL_ISOLATE_FAILURES

    rows = []
    for employee in helper.list_all_employees():
        try:
            timecard = compute_timecard(employee["id"], start, end, unterminated_policy)
        except Exception as exc:
            if not isolate_failures:
                raise
            logging.error(f"Payroll export failed for employee_id: {employee['id']}: {exc}")
            pay_rate = employee.get("pay_rate")
            rows.append(PayrollRow(
                employee_id=employee["id"],
                employee_name=employee.get("name") or "",
                pay_rate=pay_rate if isinstance(pay_rate, Decimal) else Decimal("0"),
                total_hours=format_money(Decimal("0")),
                total_pay=format_money(Decimal("0")),
                daily_breakdown={},
                error=str(exc),
            ))
            continue

        rows.append(PayrollRow(
            employee_id=employee["id"],
            employee_name=employee["name"],
            pay_rate=timecard.employee.pay_rate,
            total_hours=format_money(to_hours(timecard.total_working_time)),
            total_pay=timecard.total_pay,
            daily_breakdown=timecard.daily_report,
        ))

    return PayrollReport(
        start_date=utc_date(to_ms(start)),
        end_date=utc_date(to_ms(end)),
        employees=rows,
    )


def list_employees() -> List[Employee]:
    return [Employee(**rec) for rec in helper.list_all_employees()]


def get_employee(employee_id: str) -> Employee:
    rec = helper.get_employee(employee_id)
    if rec is None:
        raise NotFound(f"Employee {employee_id} not found")
    return Employee(**rec)


def create_employee(data: EmployeeCreate) -> Employee:
    rec = helper.create_employee(data.model_dump())
    logging.info(f"Created employee_id: {rec['id']}")
    return Employee(**rec)


def update_employee(employee_id: str, changes: EmployeeUpdate) -> Employee:
    return Employee(**helper.update_employee(employee_id, changes.model_dump(exclude_unset=True)))


def delete_employee(employee_id: str) -> None:
    helper.delete_employee(employee_id)
    logging.info(f"Deleted employee_id: {employee_id}")


def list_clock_logs(employee_id: Optional[str] = None) -> List[Punch]:
    return [Punch(**p) for p in helper.list_clock_logs(employee_id)]

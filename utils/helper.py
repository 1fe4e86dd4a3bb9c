import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from utils.errors import NotFound, ValidationError

# In-memory employee and punch stores
employee_records: Dict[str, dict] = {}
punch_records: List[dict] = []

_store_lock = threading.RLock()
_employee_locks: Dict[str, threading.Lock] = {}
_employee_locks_guard = threading.Lock()


def reset_store() -> None:
    with _store_lock:
        employee_records.clear()
        punch_records.clear()
    with _employee_locks_guard:
        _employee_locks.clear()


@contextmanager
def transaction() -> Iterator[None]:
    """Run a group of writes as one unit.

    Status changes and appended punches made inside the block are undone if
    the block raises; the exception is re-raised unchanged.
    """
    with _store_lock:
        saved_employees = {emp_id: dict(rec) for emp_id, rec in employee_records.items()}
        saved_punch_count = len(punch_records)
        try:
            yield
        except BaseException:
            employee_records.clear()
            employee_records.update(saved_employees)
            del punch_records[saved_punch_count:]
            raise


@contextmanager
def employee_lock(employee_id: str) -> Iterator[None]:
    with _employee_locks_guard:
        lock = _employee_locks.setdefault(employee_id, threading.Lock())
    with lock:
        yield


def drop_employee_lock(employee_id: str) -> None:
    with _employee_locks_guard:
        _employee_locks.pop(employee_id, None)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_employee(employee_id: str) -> Optional[dict]:
    rec = employee_records.get(employee_id)
    return dict(rec) if rec else None


def list_all_employees() -> List[dict]:
    return [dict(rec) for rec in employee_records.values()]


def create_employee(data: dict) -> dict:
    emp_id = data.get("id") or str(uuid.uuid4())
    with _store_lock:
        if emp_id in employee_records:
            raise ValidationError(f"Employee {emp_id} already exists")
        now = _now()
        rec = {
            "id": emp_id,
            "name": data["name"],
            "pin": data.get("pin"),
            "pay_rate": data["pay_rate"],
            "status": "inactive",
            "created_at": now,
            "updated_at": now,
        }
        employee_records[emp_id] = rec
    return dict(rec)


def update_employee(employee_id: str, changes: dict) -> dict:
    with _store_lock:
        rec = employee_records.get(employee_id)
        if rec is None:
            raise NotFound(f"Employee {employee_id} not found")
        for key in ("name", "pin", "pay_rate"):
            if changes.get(key) is not None:
                rec[key] = changes[key]
        rec["updated_at"] = _now()
        return dict(rec)


def update_employee_status(employee_id: str, status: str) -> dict:
    with _store_lock:
        rec = employee_records.get(employee_id)
        if rec is None:
            raise NotFound(f"Employee {employee_id} not found")
        rec["status"] = status
        rec["updated_at"] = _now()
        return dict(rec)


def delete_employee(employee_id: str) -> None:
    # Punches reference the id by value and are kept.
    with _store_lock:
        if employee_records.pop(employee_id, None) is None:
            raise NotFound(f"Employee {employee_id} not found")
    drop_employee_lock(employee_id)


def append_punch(punch: dict) -> dict:
    rec = dict(punch)
    rec.setdefault("id", str(uuid.uuid4()))
    with _store_lock:
        punch_records.append(rec)
    return dict(rec)


def get_last_punch(employee_id: str) -> Optional[dict]:
    punches = [p for p in punch_records if p["employee_id"] == employee_id]
    if punches:
        return dict(sorted(punches, key=lambda x: x["timestamp"])[-1])
    return None


def list_punches(employee_id: str, from_ts: int, to_ts: int) -> List[dict]:
    return sorted([
        dict(p) for p in punch_records
        if p["employee_id"] == employee_id and from_ts <= p["timestamp"] <= to_ts
    ], key=lambda x: x["timestamp"])


def list_clock_logs(employee_id: Optional[str] = None) -> List[dict]:
    punches = [dict(p) for p in punch_records if employee_id is None or p["employee_id"] == employee_id]
    return sorted(punches, key=lambda x: x["timestamp"], reverse=True)

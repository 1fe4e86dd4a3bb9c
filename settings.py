import os

from dotenv import load_dotenv

load_dotenv()

POLICY_DROP = "drop"
POLICY_RANGE_END = "range-end"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# What an open working segment at the end of a day earns: nothing ("drop"),
# or time up to the end of that day or of the queried range ("range-end").
UNTERMINATED_SHIFT_POLICY = os.getenv("UNTERMINATED_SHIFT_POLICY", POLICY_DROP)

PAYROLL_ISOLATE_FAILURES = _env_flag("PAYROLL_ISOLATE_FAILURES")

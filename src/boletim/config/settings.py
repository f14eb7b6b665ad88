from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return float(raw.replace(",", "."))


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    passing_grade: float = _float_env("BOLETIM_PASSING_GRADE", 6.0)
    min_dependency_grade: float = _float_env("BOLETIM_MIN_DEPENDENCY_GRADE", 4.0)
    period_count: int = _int_env("BOLETIM_PERIOD_COUNT", 4)
    min_attendance: float = _float_env("BOLETIM_MIN_ATTENDANCE", 75.0)

    max_formula_length: int = _int_env("BOLETIM_MAX_FORMULA_LENGTH", 500)
    max_formula_depth: int = _int_env("BOLETIM_MAX_FORMULA_DEPTH", 32)

    roster_workers: int = _int_env("BOLETIM_ROSTER_WORKERS", 4)
    log_level: str = os.getenv("BOLETIM_LOG_LEVEL", "WARNING").upper()


settings = Settings()

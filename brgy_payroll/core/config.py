import os
import logging
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from dotenv import load_dotenv

load_dotenv()


def _optional_decimal(name: str) -> Optional[Decimal]:
    raw = os.getenv(name, "").strip()
    return Decimal(raw) if raw else None


class PayrollSettings(BaseModel):
    # Peso amount charged per minute of manually entered lateness/absence
    deduction_rate_per_minute: Decimal = Field(
        default=Decimal(os.getenv("PAYROLL_DEDUCTION_RATE_PER_MINUTE", "1.00"))
    )
    # Divisor for the daily rate; values outside 22..31 fall back to 22
    working_days_in_period: Optional[int] = Field(
        default=int(os.getenv("PAYROLL_WORKING_DAYS", "22"))
    )
    net_pay_floor_ratio: Decimal = Field(
        default=Decimal(os.getenv("PAYROLL_NET_PAY_FLOOR_RATIO", "0.20"))
    )
    late_grace_seconds: int = Field(default=int(os.getenv("PAYROLL_LATE_GRACE_SECONDS", "60")))
    # None keeps lateness uncapped
    late_penalty_cap: Optional[Decimal] = Field(
        default_factory=lambda: _optional_decimal("PAYROLL_LATE_PENALTY_CAP")
    )
    semi_monthly_max_days: int = Field(default=int(os.getenv("PAYROLL_SEMI_MONTHLY_MAX_DAYS", "16")))
    post_loan_payments_on_release: bool = Field(
        default=os.getenv("PAYROLL_POST_LOAN_PAYMENTS_ON_RELEASE", "true").lower() == "true"
    )
    # Pay periods are calendar days in this zone; timestamps are stored in UTC
    timezone: str = Field(default=os.getenv("PAYROLL_TIMEZONE", "Asia/Manila"))


class Config(BaseModel):
    app_name: str = "Barangay Payroll Engine"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./payroll.db")

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"
    actor_header: str = "X-Actor-Id"

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    payroll: PayrollSettings = PayrollSettings()


settings = Config()

# --- Startup Validation ---
_logger = logging.getLogger(__name__)
if not (Decimal("0") <= settings.payroll.net_pay_floor_ratio < Decimal("1")):
    raise RuntimeError(
        f"FATAL: PAYROLL_NET_PAY_FLOOR_RATIO must be in [0, 1), got {settings.payroll.net_pay_floor_ratio}"
    )
try:
    ZoneInfo(settings.payroll.timezone)
except (ZoneInfoNotFoundError, ValueError):
    raise RuntimeError(f"FATAL: PAYROLL_TIMEZONE {settings.payroll.timezone!r} is not a known time zone")
if settings.environment != "development" and settings.database_url.startswith("sqlite:///./"):
    _logger.warning("Using a local SQLite file outside development.")

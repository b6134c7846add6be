"""
Scheduling Settings for the installment engine.

Holds the cadence of each payment frequency and the retry backoff table.
Values can be overridden via environment variables with the SCHEDULING_
prefix:
    SCHEDULING_WEEKLY_STEP_WEEKS=1
    SCHEDULING_RETRY_DELAYS_MINUTES_JSON=[1, 1440, 2880, 4320]
    SCHEDULING_MAX_CHARGE_ATTEMPTS=6

Usage:
    from layaway.service.scheduling.settings import scheduling_settings

    policy = scheduling_settings.retry_policy

    # Or compress the table for tests
    custom = SchedulingSettings(retry_delays_minutes_json="[0.001]")
"""

import json
from datetime import timedelta
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from layaway.domain.entities import PaymentFrequency
from .models import RetryPolicy


class SchedulingSettings(BaseSettings):
    """
    Configurable parameters for schedule generation and retries.

    Cadences are in weeks, retry delays in minutes.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Cadence ===
    weekly_step_weeks: int = Field(
        default=1,
        ge=1,
        description="Weeks between installments for weekly bookings",
    )
    bi_weekly_step_weeks: int = Field(
        default=2,
        ge=1,
        description="Weeks between installments for bi-weekly bookings",
    )
    monthly_step_weeks: int = Field(
        default=4,
        ge=1,
        description="Weeks between installments for monthly bookings",
    )

    # === Retries ===
    retry_delays_minutes_json: str = Field(
        default="[1, 1440, 2880, 4320]",
        description="Backoff table as JSON array of minutes, indexed by attempt count",
    )
    max_charge_attempts: int = Field(
        default=6,
        ge=1,
        description="Failed attempts after which no further retry is scheduled",
    )

    @field_validator("retry_delays_minutes_json")
    @classmethod
    def validate_delays_json(cls, v: str) -> str:
        """Validate that the backoff table is a non-empty list of positive numbers."""
        try:
            delays = json.loads(v)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}")
        if not isinstance(delays, list) or not delays:
            raise ValueError("Retry delays must be a non-empty list")
        for delay in delays:
            if isinstance(delay, bool) or not isinstance(delay, (int, float)):
                raise ValueError(f"Retry delay must be a number: {delay!r}")
            if delay <= 0:
                raise ValueError(f"Retry delay must be positive: {delay}")
        return v

    @property
    def retry_delays_minutes(self) -> List[float]:
        return json.loads(self.retry_delays_minutes_json)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            delays=tuple(timedelta(minutes=m) for m in self.retry_delays_minutes),
            max_attempts=self.max_charge_attempts,
        )

    def step_weeks(self, frequency: PaymentFrequency) -> int:
        """Weeks between installments for a frequency (lump-sum has none)."""
        steps = {
            PaymentFrequency.WEEKLY: self.weekly_step_weeks,
            PaymentFrequency.BI_WEEKLY: self.bi_weekly_step_weeks,
            PaymentFrequency.MONTHLY: self.monthly_step_weeks,
        }
        if frequency not in steps:
            raise ValueError(f"Frequency has no cadence: {frequency.value}")
        return steps[frequency]


@lru_cache
def get_scheduling_settings() -> SchedulingSettings:
    """Get cached scheduling settings instance."""
    return SchedulingSettings()


scheduling_settings = get_scheduling_settings()

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LendingConfig(BaseSettings):
    """Lending policy. Built once at startup and handed to each component.

    Values come from ``LENDING_*`` environment variables; blank ones fall
    back to the defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="LENDING_",
        env_ignore_empty=True,
        case_sensitive=False,
        frozen=True,
    )

    fee_per_day: Decimal = Field(default=Decimal("1.00"), ge=0)
    loan_period_days: int = Field(default=14, ge=1)
    renewal_period_days: int = Field(default=14, ge=1)
    max_renewals: int = Field(default=2, ge=0)
    allow_overdue_renewal: bool = False
    reservation_window_days: int = Field(default=14, ge=1)

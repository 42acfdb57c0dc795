# ruff: noqa: TC003
from __future__ import annotations

import datetime

from sqlmodel import Field

from hr_ledger.models.base import UUIDBase


class CompanyHoliday(UUIDBase, table=True):
    """A regular holiday; overtime worked on it is paid at holiday rates."""

    __tablename__ = "company_holiday"

    date: datetime.date = Field(unique=True, index=True)
    name: str = Field(max_length=255)

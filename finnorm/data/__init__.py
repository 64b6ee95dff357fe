"""Payload types, loading and persistence."""

from __future__ import annotations

from finnorm.data.loader import load_directory, load_payload, resolve_company_type
from finnorm.data.models import (
    FinanceRawPayload,
    NonFinanceRawPayload,
    RawCompanyPayload,
    make_payload,
)
from finnorm.data.store import CompanyStore, StoreResult

__all__ = [
    "CompanyStore",
    "FinanceRawPayload",
    "NonFinanceRawPayload",
    "RawCompanyPayload",
    "StoreResult",
    "load_directory",
    "load_payload",
    "make_payload",
    "resolve_company_type",
]

"""
Auth Module - organization responsibility checks
"""

from tender_quorum.auth.directory import (
    OrganizationResponsibility,
    ResponsibilityDirectory,
    SQLiteResponsibilityDirectory,
)
from tender_quorum.auth.gate import AuthorizationGate

__all__ = [
    "AuthorizationGate",
    "OrganizationResponsibility",
    "ResponsibilityDirectory",
    "SQLiteResponsibilityDirectory",
]

"""
Authorization Gate

Answers "may this user act for this organization?" in two flavours:

- is_responsible: tolerant, for display paths; a failed lookup reads as
  False and is logged
- require_responsible: strict, for state changes; a miss raises
  Unauthorized and a failed lookup propagates as Unavailable, so a store
  outage is never reported as a permission problem

Whatever a directory raises outside the TenderQuorumError hierarchy
(driver errors, connection errors) surfaces as
ResponsibilityLookupUnavailable.
"""

from collections.abc import Generator
from contextlib import contextmanager

from tender_quorum.auth.directory import ResponsibilityDirectory
from tender_quorum.kernel.errors import (
    ResponsibilityLookupUnavailable,
    TenderQuorumError,
    Unauthorized,
    Unavailable,
)
from tender_quorum.kernel.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def _lookup(organization_id: str) -> Generator[None, None, None]:
    try:
        yield
    except TenderQuorumError:
        raise
    except Exception as e:
        raise ResponsibilityLookupUnavailable(organization_id, repr(e)) from e


class AuthorizationGate:
    def __init__(self, directory: ResponsibilityDirectory) -> None:
        self.directory = directory

    def is_responsible(self, user_id: str, organization_id: str) -> bool:
        try:
            with _lookup(organization_id):
                return self.directory.is_responsible(user_id, organization_id)
        except Unavailable as e:
            logger.warning(
                "Responsibility check failed, treating as not responsible",
                organization_id=organization_id,
                error=str(e),
            )
            return False

    def require_responsible(self, user_id: str, organization_id: str, action: str) -> None:
        """
        Raise Unauthorized unless user_id is responsible for organization_id

        Raises:
            Unauthorized: The user is not responsible
            Unavailable: The directory could not be consulted
        """
        with _lookup(organization_id):
            responsible = self.directory.is_responsible(user_id, organization_id)
        if not responsible:
            logger.warning(
                "Unauthorized action",
                organization_id=organization_id,
                action=action,
            )
            raise Unauthorized(user_id, organization_id, action)

    def list_responsibles(self, organization_id: str) -> list[str]:
        """
        Fresh read of the organization's responsibles

        Raises:
            Unavailable: The directory could not be consulted
        """
        with _lookup(organization_id):
            return self.directory.list_responsibles(organization_id)

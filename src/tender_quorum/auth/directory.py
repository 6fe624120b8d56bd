"""
Responsibility Directory - who may act for an organization

The marketplace keeps organization <-> responsible user links outside the
tender/bid core; the core only reads them. This module defines the read
protocol and a SQLite-backed implementation (which can share the event
store's database file). grant/revoke exist for operator seeding.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from tender_quorum.kernel.errors import ResponsibilityLookupUnavailable
from tender_quorum.kernel.logging import get_logger

logger = get_logger(__name__)


class ResponsibilityDirectory(Protocol):
    """Read access to organization responsibles"""

    def list_responsibles(self, organization_id: str) -> list[str]:
        """User ids responsible for the organization (fresh read)"""
        ...

    def is_responsible(self, user_id: str, organization_id: str) -> bool:
        ...


class OrganizationResponsibility(SQLModel, table=True):
    """Link between an organization and one of its responsible users"""

    __tablename__ = "organization_responsibles"

    organization_id: str = Field(primary_key=True)
    user_id: str = Field(primary_key=True)
    granted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SQLiteResponsibilityDirectory:
    """
    ResponsibilityDirectory backed by an `organization_responsibles` table

    Every failure of the database surfaces as ResponsibilityLookupUnavailable
    so callers can tell "not responsible" from "could not check".
    """

    def __init__(self, db_path: str | Path, busy_timeout_seconds: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False, "timeout": busy_timeout_seconds},
        )
        with self._session("*"):
            SQLModel.metadata.create_all(
                self.engine, tables=[OrganizationResponsibility.__table__]
            )

    @contextmanager
    def _session(self, organization_id: str) -> Iterator[Session]:
        try:
            with Session(self.engine) as session:
                yield session
        except SQLAlchemyError as e:
            logger.warning(
                "Responsibility directory unavailable",
                organization_id=organization_id,
                error=str(e),
            )
            raise ResponsibilityLookupUnavailable(organization_id, str(e)) from e

    def list_responsibles(self, organization_id: str) -> list[str]:
        with self._session(organization_id) as session:
            statement = (
                select(OrganizationResponsibility.user_id)
                .where(OrganizationResponsibility.organization_id == organization_id)
                .order_by(OrganizationResponsibility.user_id)
            )
            return list(session.exec(statement).all())

    def is_responsible(self, user_id: str, organization_id: str) -> bool:
        with self._session(organization_id) as session:
            link = session.get(OrganizationResponsibility, (organization_id, user_id))
            return link is not None

    def grant(self, organization_id: str, user_id: str) -> bool:
        """
        Make user_id responsible for organization_id

        Returns:
            False if the link already existed
        """
        with self._session(organization_id) as session:
            if session.get(OrganizationResponsibility, (organization_id, user_id)):
                return False
            session.add(
                OrganizationResponsibility(organization_id=organization_id, user_id=user_id)
            )
            session.commit()
            return True

    def revoke(self, organization_id: str, user_id: str) -> bool:
        """
        Remove user_id from organization_id's responsibles

        Returns:
            False if there was no such link
        """
        with self._session(organization_id) as session:
            link = session.get(OrganizationResponsibility, (organization_id, user_id))
            if link is None:
                return False
            session.delete(link)
            session.commit()
            return True

"""
Durable OTP Log
===============
Best-effort record of issued challenges, consulted by the identity path
when the in-memory challenge is gone (e.g. after a restart).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import JSON, DateTime, Integer, String, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column
import structlog

from ..errors import AuditLogError
from ..otp.models import Challenge
from .database import Base

logger = structlog.get_logger(__name__)


@dataclass
class OTPLogEntry:
    """A durable challenge record."""
    handle: str
    identity: str
    code_hash: str
    salt: str
    created_at: datetime
    expires_at: datetime
    aux: Dict[str, str] = field(default_factory=dict)
    consumed_at: Optional[datetime] = None

    def to_challenge(self) -> Challenge:
        """Rebuild an in-memory challenge with a fresh attempt counter."""
        return Challenge(
            handle=self.handle,
            code_hash=self.code_hash,
            salt=self.salt,
            identity=self.identity,
            created_at=self.created_at,
            aux=dict(self.aux),
        )


class DurableOTPLog(ABC):
    """Storage-agnostic interface for the durable OTP log."""

    @abstractmethod
    async def record(self, challenge: Challenge, expires_at: datetime) -> None:
        """Persist an issued challenge. Raises AuditLogError on failure."""
        pass

    @abstractmethod
    async def latest_for(self, identity: str, since: datetime) -> Optional[OTPLogEntry]:
        """Most recent unconsumed record for identity created after since."""
        pass

    @abstractmethod
    async def mark_consumed(self, handle: str, at: datetime) -> None:
        """Flag a record as used so the fallback never accepts it again."""
        pass


class OTPLogRecord(Base):
    """Row in ``otp_logs``."""
    __tablename__ = "otp_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    otp_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), index=True)
    aux: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict)
    otp_hash: Mapped[str] = mapped_column(String(64))
    salt: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class SQLAlchemyOTPLog(DurableOTPLog):
    """DurableOTPLog on an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(self, challenge: Challenge, expires_at: datetime) -> None:
        row = OTPLogRecord(
            otp_id=challenge.handle,
            email=challenge.identity,
            aux=dict(challenge.aux),
            otp_hash=challenge.code_hash,
            salt=challenge.salt,
            created_at=challenge.created_at,
            expires_at=expires_at,
        )
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise AuditLogError("OTP log insert failed", last_exception=e) from e

    async def latest_for(self, identity: str, since: datetime) -> Optional[OTPLogEntry]:
        stmt = (
            select(OTPLogRecord)
            .where(
                OTPLogRecord.email == identity,
                OTPLogRecord.created_at > since,
                OTPLogRecord.consumed_at.is_(None),
            )
            .order_by(OTPLogRecord.created_at.desc())
            .limit(1)
        )
        try:
            async with self.session_factory() as session:
                row = (await session.execute(stmt)).scalars().first()
        except SQLAlchemyError as e:
            raise AuditLogError("OTP log lookup failed", last_exception=e) from e

        if row is None:
            return None
        return OTPLogEntry(
            handle=row.otp_id,
            identity=row.email,
            code_hash=row.otp_hash,
            salt=row.salt,
            created_at=_as_utc(row.created_at),
            expires_at=_as_utc(row.expires_at),
            aux=dict(row.aux or {}),
            consumed_at=_as_utc(row.consumed_at),
        )

    async def mark_consumed(self, handle: str, at: datetime) -> None:
        stmt = (
            update(OTPLogRecord)
            .where(OTPLogRecord.otp_id == handle, OTPLogRecord.consumed_at.is_(None))
            .values(consumed_at=at)
        )
        try:
            async with self.session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise AuditLogError("OTP log update failed", last_exception=e) from e

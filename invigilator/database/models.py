"""SQLAlchemy ORM models for the record store."""

from sqlalchemy import Column, ForeignKey, Index, Integer, BigInteger, String
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


class SessionRecord(Base):
    """One exam session's configuration."""

    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    exam_duration_minutes = Column(Integer, nullable=False)
    reading_time_minutes = Column(Integer, nullable=False)
    start_time_epoch_ms = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)   # epoch ms
    updated_at = Column(BigInteger, nullable=False)

    desks = relationship(
        "DeskRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="DeskRecord.desk_number",
    )

    __table_args__ = (Index("idx_sessions_created_at", "created_at"),)

    def __repr__(self) -> str:
        return f"<SessionRecord id={self.id} name={self.name!r}>"


class DeskRecord(Base):
    __tablename__ = "desks"

    id = Column(String(64), primary_key=True)
    session_id = Column(
        String(64), ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    desk_number = Column(Integer, nullable=False)
    student_name = Column(String(255), nullable=True)
    dp_time_taken_minutes = Column(Integer, nullable=False, default=0)
    adjusted_finish_epoch_ms = Column(BigInteger, nullable=False, default=0)

    session = relationship("SessionRecord", back_populates="desks")
    events = relationship(
        "TimerEventRecord",
        back_populates="desk",
        cascade="all, delete-orphan",
        order_by="TimerEventRecord.id",
    )

    def __repr__(self) -> str:
        return (
            f"<DeskRecord #{self.desk_number} "
            f"dp={self.dp_time_taken_minutes}m>"
        )


class TimerEventRecord(Base):
    """Append-only audit log, one row per desk per event."""

    __tablename__ = "timer_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    desk_id = Column(
        String(64), ForeignKey("desks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    type = Column(String(20), nullable=False)   # see TimerEventType
    timestamp = Column(BigInteger, nullable=False)
    value_minutes = Column(Integer, nullable=True)

    desk = relationship("DeskRecord", back_populates="events")

    def __repr__(self) -> str:
        return f"<TimerEventRecord {self.type} at={self.timestamp}>"

import enum

from sqlalchemy import Column, DateTime, Enum, Integer, JSON, String, UniqueConstraint
from callscreen.core.clock import utcnow
from callscreen.core.database import Base


class Qualification(enum.Enum):
    QUALIFIED = "QUALIFIED"
    NOT_QUALIFIED = "NOT_QUALIFIED"
    PENDING = "PENDING"

    @classmethod
    def from_bool(cls, value: bool | None) -> "Qualification":
        if value is None:
            return cls.PENDING
        return cls.QUALIFIED if value else cls.NOT_QUALIFIED

    def as_bool(self) -> bool | None:
        if self is Qualification.PENDING:
            return None
        return self is Qualification.QUALIFIED

    @property
    def label(self) -> str:
        return {
            Qualification.QUALIFIED: "Qualified",
            Qualification.NOT_QUALIFIED: "Not Qualified",
            Qualification.PENDING: "Pending Review",
        }[self]


class CallRecord(Base):
    __tablename__ = "call_records"
    __table_args__ = (UniqueConstraint("conversation_id", name="uq_call_records_conversation_id"),)

    id = Column(Integer, primary_key=True)
    conversation_id = Column(String(128), nullable=False)
    agent_id = Column(String(128), nullable=False, index=True)
    status = Column(String(40), nullable=False)
    first_name = Column(String(120))
    last_name = Column(String(120))
    phone = Column(String(64), index=True)
    qualification = Column(
        Enum(Qualification, name="qualification"),
        nullable=False,
        default=Qualification.PENDING,
        index=True,
    )
    raw_data = Column(JSON, nullable=False)
    extracted_data = Column(JSON)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def qualified(self) -> bool | None:
        return self.qualification.as_bool() if self.qualification else None

    @property
    def display_name(self) -> str:
        return f"{self.first_name or 'Unknown'} {self.last_name or ''}".strip()

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
    Index,
)

from pharmacy_pos.core.clock import now_local
from pharmacy_pos.db.base import Base


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SALE = "SALE"
    PURCHASE = "PURCHASE"


class AuditEntity(str, enum.Enum):
    MEDICINE = "MEDICINE"
    BATCH = "BATCH"
    SALE = "SALE"
    CUSTOMER = "CUSTOMER"


class AuditLog(Base):
    """
    Append-only audit log.
    Every CREATE / UPDATE / DELETE / SALE / PURCHASE writes here.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_entity", "entity_type", "entity_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(String(64), nullable=False, default="system-user", index=True)
    action = Column(String(20), nullable=False, index=True)

    entity_type = Column(String(30), nullable=False)
    entity_id = Column(String(100),
                       nullable=False)  # generic pk, stored as string

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)  # IPv4/IPv6

    timestamp = Column(DateTime, default=now_local, nullable=False, index=True)

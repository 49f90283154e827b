# pharmacy_pos/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All pharmacy tables (medicines, batches, sales, registers) inherit from this."""
    pass

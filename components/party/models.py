"""Party model for the database."""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Enum

from components.core.database import Base


class PartyType(str, enum.Enum):
    BUYER = "Buyer"
    SELLER = "Seller"
    BOTH = "Both"
    LENDER = "Lender"  # Lends money to us
    BORROWER = "Borrower"  # Borrows money from us
    FINANCIAL = "Financial"  # Both lends and borrows
    PROCESSOR = "Processor"  # Brings material for job work


class Party(Base):
    """Counter-party of a loan, looked up by the engine for validation and name snapshots."""
    __tablename__ = "parties"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    mobile_number = Column(String(20), nullable=False, default="")
    place = Column(String(200), nullable=False, default="")
    party_type = Column(Enum(PartyType), nullable=False)
    created_date = Column(DateTime, nullable=False, default=datetime.now)

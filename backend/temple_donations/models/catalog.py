"""
Catalog Models — Donation categories and events.
Managed by the admin CMS; read here only to resolve a donation's purpose.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text

from temple_donations.database import Base


class DonationCategory(Base):
    __tablename__ = "donation_categories"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    title = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Boolean, default=True, nullable=False)

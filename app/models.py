"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.

Timestamps are stored as ISO-8601 UTC strings with microsecond precision
(see app.utils.utc_timestamp), so string order is chronological order.
"""

from sqlalchemy import Boolean, Column, Integer, String, Text, UniqueConstraint

from app.storage import Base


class ContactMessage(Base):
    """
    A contact form submission from the public site.

    Table: contacts
    """
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False, index=True)


class ContentEntry(Base):
    """
    One editable text slot of the site, e.g. section="hero", key="title".

    Table: content
    """
    __tablename__ = "content"
    __table_args__ = (UniqueConstraint("section", "key", name="uq_content_section_key"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    section = Column(String(100), nullable=False)
    key = Column(String(100), nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(String, nullable=False)


class PageViewCounter(Base):
    """
    View counter for a single site path.

    Table: page_views
    Unique: path (at most one counter per path)
    """
    __tablename__ = "page_views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String(255), nullable=False, unique=True, index=True)
    count = Column(Integer, nullable=False, default=0)
    updated_at = Column(String, nullable=False)


class UserAccount(Base):
    """
    Admin account. Password holds a bcrypt hash, never plaintext.

    Table: users
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)
    created_at = Column(String, nullable=False)

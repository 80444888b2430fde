# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Database models for accounts, linked identities, secrets and sessions."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class DBAccount(Base):
    __tablename__ = "accounts"

    id = Column(String(32), primary_key=True)
    # NULL for accounts created purely through an external provider.
    username = Column(String(255), nullable=True, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    identities = relationship("DBExternalIdentity", back_populates="account", cascade="all, delete-orphan")
    secrets = relationship(
        "DBSecret",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="DBSecret.secret_id",
    )


class DBExternalIdentity(Base):
    """A (provider, subject id) pair linked to exactly one account."""

    __tablename__ = "external_identities"
    __table_args__ = (
        UniqueConstraint("provider", "subject_id", name="uq_identity_provider_subject"),
        UniqueConstraint("account_id", "provider", name="uq_identity_account_provider"),
    )

    identity_id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    subject_id = Column(String(255), nullable=False)

    account = relationship("DBAccount", back_populates="identities")


class DBSecret(Base):
    __tablename__ = "secrets"

    secret_id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    ciphertext = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    account = relationship("DBAccount", back_populates="secrets")


class DBSession(Base):
    """Server-side session. The cookie only carries the signed session_id."""

    __tablename__ = "sessions"

    session_id = Column(String(64), primary_key=True)
    account_id = Column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

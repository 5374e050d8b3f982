from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import Index

from kesimarket.app.extensions import db


class CartSession(db.Model):
    """One row per anonymous cart session id.

    ``merged_at`` is claimed atomically when a login merges the session's
    cart, so each anonymous cart is merged into a user cart at most once.
    Catalog data lives in the remote API; this is the only local table.
    """

    __tablename__ = "cart_sessions"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    merged_at = db.Column(db.DateTime, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)

    __table_args__ = (
        Index("ix_cart_sessions_merged", "merged_at"),
    )

    @classmethod
    def record(cls, session_id: str) -> "CartSession":
        row = cls.query.filter_by(session_id=session_id).first()
        if row is None:
            row = cls(session_id=session_id)
            db.session.add(row)
            db.session.commit()
        return row

    @classmethod
    def claim(cls, session_id: str) -> bool:
        """Mark the session merged; False when another request got there first."""
        cls.record(session_id)
        claimed = (
            cls.query.filter(cls.session_id == session_id, cls.merged_at.is_(None))
            .update({"merged_at": datetime.utcnow()}, synchronize_session=False)
        )
        db.session.commit()
        return claimed == 1

    @classmethod
    def release(cls, session_id: str) -> None:
        cls.query.filter_by(session_id=session_id).update({"merged_at": None}, synchronize_session=False)
        db.session.commit()

    @classmethod
    def complete(cls, session_id: str, user_id: int) -> None:
        cls.query.filter_by(session_id=session_id).update({"user_id": user_id}, synchronize_session=False)
        db.session.commit()

    @classmethod
    def prune(cls, days: int) -> int:
        """Delete merged rows and abandoned sessions older than ``days``."""
        cutoff = datetime.utcnow() - timedelta(days=days)
        deleted = (
            cls.query.filter(db.or_(cls.merged_at < cutoff, db.and_(cls.merged_at.is_(None), cls.created_at < cutoff)))
            .delete(synchronize_session=False)
        )
        db.session.commit()
        return deleted

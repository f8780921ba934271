import hashlib
from datetime import datetime, timedelta
from sqlalchemy import or_
from sqlalchemy.orm import Session
from models.refresh_tokens import RefreshToken
from utils.clock import utcnow


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenStore:
    """
    Persistence for refresh-token rows.

    Every write that depends on the current row state is a single
    conditional UPDATE; callers decide on the affected row count.
    """

    @staticmethod
    def add(db: Session, user_id: str, token: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=expires_at
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def find_active(db: Session, token: str, user_id: str) -> RefreshToken | None:
        return db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_token(token),
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None),
            RefreshToken.expires_at > utcnow()
        ).first()

    @staticmethod
    def mark_revoked(db: Session, token: str, only_if_active: bool = False) -> bool:
        """
        Set revoked_at on the row for token unless it is already set.

        With only_if_active the row must also be unexpired, which makes
        this usable as the claim step of a rotation.
        Returns True when this call performed the revocation.
        """
        now = utcnow()
        query = db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_token(token),
            RefreshToken.revoked_at.is_(None)
        )
        if only_if_active:
            query = query.filter(RefreshToken.expires_at > now)

        updated = query.update({RefreshToken.revoked_at: now}, synchronize_session=False)
        db.commit()
        return updated == 1

    @staticmethod
    def mark_all_revoked(db: Session, user_id: str) -> int:
        updated = db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None)
        ).update({RefreshToken.revoked_at: utcnow()}, synchronize_session=False)
        db.commit()
        return updated

    @staticmethod
    def purge_stale(db: Session, retention: timedelta) -> int:
        """Delete rows that expired or were revoked more than `retention` ago."""
        cutoff = utcnow() - retention
        deleted = db.query(RefreshToken).filter(
            or_(
                RefreshToken.expires_at < cutoff,
                RefreshToken.revoked_at < cutoff
            )
        ).delete(synchronize_session=False)
        db.commit()
        return deleted

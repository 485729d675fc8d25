from sqlalchemy import BigInteger, Column, Integer, String, Text

from app.db.base import Base


class AuthChallenge(Base):
    """Model for storing single-use wallet authentication challenges.
    Example:
    {
        "challenge": "q0fJ3u1mB1o8m9gJ2xYtq7cVZ4kA_1718000000000",
        "wallet_address": "GA...",
        "created_at": 1718000000,
        "expires_at": 1718000300
    }
    """

    __tablename__ = "auth_challenge"

    challenge = Column(String(128), primary_key=True)
    wallet_address = Column(String(69), nullable=False)
    created_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False, index=True)


class AuthSession(Base):
    """Issued session tokens, kept for cleanup and revocation bookkeeping."""

    __tablename__ = "auth_session"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(69), nullable=False, index=True)
    token = Column(Text, nullable=False, unique=True)
    created_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False, index=True)

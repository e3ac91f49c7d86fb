"""
Kernel Data Models

Core SQLAlchemy models for the identity kernel.
"""

from src.kernel.models.base import Base, TimestampMixin, generate_uuid
from src.kernel.models.account import Account, normalize_email

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    # Account
    "Account",
    "normalize_email",
]

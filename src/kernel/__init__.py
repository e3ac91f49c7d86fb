"""
Identity Kernel

Foundational components of the accounts service:
- Account model (one row per registered identity)
- Identity Core (password hashing, signed tokens, credential service)

Invariants:
- Password hashes and signing secrets never leave the kernel
- Tokens are stateless; expiry is their only end
"""

from src.kernel.models import Account

__all__ = [
    "Account",
]

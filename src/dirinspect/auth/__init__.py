"""
Credential storage and the login handshake
"""

from .credential_store import CredentialRecord, CredentialStore, hash_password, generate_salt
from .authenticator import Authenticator, AuthResult

__all__ = [
    "CredentialRecord",
    "CredentialStore",
    "hash_password",
    "generate_salt",
    "Authenticator",
    "AuthResult",
]

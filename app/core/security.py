"""Password hashing and opaque bearer-token primitives."""

import hashlib
import secrets
import string
from functools import lru_cache

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Min/max lengths for email and password validation (input validation at the API layer).
EMAIL_MIN_LEN = 1
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def generate_token_value(num_bytes: int) -> str:
    """Return a URL-safe random bearer value. Only its hash is ever persisted."""
    return secrets.token_urlsafe(num_bytes)


def hash_token(plain_token: str) -> str:
    """
    SHA-256 hex digest used as the token lookup key.

    Bearer values carry enough entropy that a fast hash is sufficient; bcrypt
    would make every authenticated request pay the password cost.
    """
    return hashlib.sha256(plain_token.encode("utf-8")).hexdigest()


def generate_temporary_password(length: int) -> str:
    """Random alphanumeric password drawn from the OS CSPRNG."""
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


class PasswordHasher:
    """
    bcrypt hasher bound to a cost factor.

    Holds a dummy digest so lookups that miss still spend one verify call,
    keeping response time independent of whether the email exists.
    """

    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash = hash_password("warden-timing-equalizer", rounds=rounds)

    def hash(self, plain_password: str) -> str:
        return hash_password(plain_password, rounds=self.rounds)

    def verify(self, plain_password: str, hashed: str) -> bool:
        return verify_password(plain_password, hashed)

    def verify_dummy(self, plain_password: str) -> None:
        verify_password(plain_password, self._dummy_hash)


@lru_cache
def get_password_hasher(rounds: int = BCRYPT_ROUNDS) -> PasswordHasher:
    """One hasher per cost factor, so the dummy digest is computed once per process."""
    return PasswordHasher(rounds=rounds)

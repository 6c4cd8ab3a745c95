"""Password hashing backed by bcrypt."""

import bcrypt

from .errors import PasswordTooLong

DEFAULT_ROUNDS = 12
# bcrypt only reads this many bytes of input
MAX_PASSWORD_BYTES = 72


def password_fits(password: str) -> bool:
    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


class BcryptPasswordHasher:
    """One-way hash and verify for account passwords."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt

        Raises:
            PasswordTooLong: Password is longer than MAX_PASSWORD_BYTES
        """
        if not password_fits(password):
            raise PasswordTooLong()
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash"""
        if not password_hash or not password_fits(password):
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash
            return False

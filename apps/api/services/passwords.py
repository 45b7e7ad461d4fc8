"""Password hashing with bcrypt."""

import bcrypt

from services.errors import InvalidArgument


BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    pw = password.encode("utf-8")
    if len(pw) > 72:
        raise InvalidArgument("Password too long (max 72 bytes)")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidArgument(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    hashed = bcrypt.hashpw(pw, bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False

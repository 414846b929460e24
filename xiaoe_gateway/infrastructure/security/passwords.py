"""Password hashing with bcrypt"""

import bcrypt

# bcrypt refuses (or silently truncates) input beyond 72 bytes
MAX_PASSWORD_BYTES = 72


def password_fits(password: str) -> bool:
    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    """Raises ValueError for passwords bcrypt cannot take whole"""
    if not password_fits(password):
        raise ValueError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Constant-time check; malformed stored hashes and over-long passwords never match"""
    if not password_fits(password):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False

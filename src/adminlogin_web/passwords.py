import re

import bcrypt
from werkzeug.security import check_password_hash, generate_password_hash

import config as cfg

_BCRYPT_RE = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")


def is_legacy_bcrypt_hash(s: str) -> bool:
    """bcrypt hashes carried over from the previous deployment."""
    return bool(_BCRYPT_RE.match((s or "").strip()))


def hash_password(plain: str) -> str:
    # PBKDF2 (salted + iterated) unless PASSWORD_HASH_METHOD says otherwise.
    return generate_password_hash(plain, method=cfg.PASSWORD_HASH_METHOD, salt_length=16)


def verify_password(stored_hash: str, plain: str) -> bool:
    stored_hash = (stored_hash or "").strip()
    if not stored_hash or plain is None:
        return False
    if is_legacy_bcrypt_hash(stored_hash):
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), stored_hash.encode("ascii"))
        except ValueError:
            return False
    try:
        return check_password_hash(stored_hash, plain)
    except ValueError:
        return False


def needs_rehash(stored_hash: str) -> bool:
    return is_legacy_bcrypt_hash(stored_hash)

"""Credential management: add, authenticate, list, update and delete admins.

A username may hold one record per admin type. Every operation that touches
several records runs in a single store transaction: conflicts are checked
first and the writes are committed together, so a rejected call leaves the
store unchanged.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from adminlogin_common.logutil import kv
from adminlogin_store.store import CredentialStore, DuplicateRecord

from . import passwords
from .admin_types import ADMIN_TYPES, normalize_admin_types, validate_admin_type
from .errors import AuthError, Conflict, NotFound, ValidationError
from .logging_setup import log

AdminTypes = Union[str, Iterable[str]]


@dataclass(frozen=True)
class AuthResult:
    username: str
    admin_type: str


@dataclass(frozen=True)
class GroupedUser:
    username: str
    admin_types: Tuple[str, ...]

    def to_dict(self) -> Dict[str, object]:
        return {"username": self.username, "adminType": list(self.admin_types)}


def _require(*values) -> None:
    for v in values:
        if not isinstance(v, str) or not v.strip():
            raise ValidationError("Missing fields")


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip text fields; treat blank as absent."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Invalid field value")
    value = value.strip()
    return value or None


def _new_password(value: Optional[str]) -> Optional[str]:
    """Blank means absent; otherwise hashed exactly as given, like add_user."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Invalid field value")
    return value if value.strip() else None


class CredentialService:
    def __init__(self, store: CredentialStore):
        self.store = store

    def authenticate(self, username: str, password: str, admin_type: str) -> AuthResult:
        _require(username, password, admin_type)
        username = username.strip()
        admin_type = validate_admin_type(admin_type)

        record = self.store.get(username, admin_type)
        if record is None or not passwords.verify_password(record.password_hash, password):
            log.info(kv("login rejected", user=username, admin_type=admin_type))
            raise AuthError()

        if passwords.needs_rehash(record.password_hash):
            with self.store.transaction() as tx:
                tx.update(username, admin_type, new_password_hash=passwords.hash_password(password))
            log.info(kv("legacy hash upgraded", user=username, admin_type=admin_type))

        return AuthResult(username=username, admin_type=admin_type)

    def add_user(self, username: str, password: str, admin_types: AdminTypes) -> Tuple[str, ...]:
        _require(username, password)
        username = username.strip()
        types = normalize_admin_types(admin_types)
        password_hash = passwords.hash_password(password)

        try:
            with self.store.transaction() as tx:
                for t in types:
                    if tx.get(username, t) is not None:
                        raise Conflict(f"User exists for {t}")
                for t in types:
                    tx.insert(username, password_hash, t)
        except DuplicateRecord:
            raise Conflict("User already exists") from None

        log.info(kv("user added", user=username, admin_type=",".join(types)))
        return types

    def list_users(self) -> List[GroupedUser]:
        grouped: Dict[str, set] = {}
        for record in self.store.all():
            grouped.setdefault(record.username, set()).add(record.admin_type)
        return [
            GroupedUser(name, tuple(t for t in ADMIN_TYPES if t in types))
            for name, types in sorted(grouped.items())
        ]

    def delete_user(self, username: str, admin_type: Optional[str] = None) -> int:
        """Delete one (username, admin_type) record, or every record of `username`."""
        _require(username)
        username = username.strip()
        if admin_type is not None:
            admin_type = validate_admin_type(admin_type)

        with self.store.transaction() as tx:
            if admin_type is None:
                removed = tx.delete_all(username)
            else:
                removed = tx.delete_one(username, admin_type)
        if not removed:
            raise NotFound()

        log.info(kv("user deleted", user=username, admin_type=admin_type or "*", removed=removed))
        return removed

    def update_user(
        self,
        username: str,
        admin_type: str,
        new_username: Optional[str] = None,
        new_password: Optional[str] = None,
        new_admin_type: Optional[str] = None,
    ) -> AuthResult:
        """Edit a single record in place."""
        _require(username, admin_type)
        username = username.strip()
        admin_type = validate_admin_type(admin_type)
        new_username = _clean(new_username)
        new_password = _new_password(new_password)
        new_admin_type = _clean(new_admin_type)
        if new_admin_type is not None:
            new_admin_type = validate_admin_type(new_admin_type)
        if new_username is None and new_password is None and new_admin_type is None:
            raise ValidationError("Nothing to update")

        target_user = new_username or username
        target_type = new_admin_type or admin_type
        new_hash = passwords.hash_password(new_password) if new_password is not None else None

        try:
            with self.store.transaction() as tx:
                if tx.get(username, admin_type) is None:
                    raise NotFound()
                if (target_user, target_type) != (username, admin_type) and tx.get(target_user, target_type) is not None:
                    raise Conflict(f"User exists for {target_type}")
                tx.update(
                    username,
                    admin_type,
                    new_username=new_username,
                    new_password_hash=new_hash,
                    new_admin_type=new_admin_type,
                )
        except DuplicateRecord:
            raise Conflict(f"User exists for {target_type}") from None

        log.info(kv(
            "user updated",
            user=username,
            admin_type=admin_type,
            new_user=new_username,
            new_admin_type=new_admin_type,
            password_changed="yes" if new_hash else None,
        ))
        return AuthResult(username=target_user, admin_type=target_type)

    def replace_user(
        self,
        old_username: str,
        new_username: Optional[str],
        admin_types: AdminTypes,
        new_password: Optional[str] = None,
    ) -> GroupedUser:
        """Replace every record of `old_username` with one record per type in `admin_types`.

        Without `new_password` each type keeps the hash it had under the old
        username. Granting a type the user did not have before requires a
        password, since there is no hash to carry over.
        """
        _require(old_username)
        old_username = old_username.strip()
        new_username = _clean(new_username) or old_username
        new_password = _new_password(new_password)
        types = normalize_admin_types(admin_types)
        new_hash = passwords.hash_password(new_password) if new_password is not None else None

        try:
            with self.store.transaction() as tx:
                existing = {r.admin_type: r for r in tx.find_by_username(old_username)}
                if not existing:
                    raise NotFound()
                if new_username != old_username and tx.find_by_username(new_username):
                    raise Conflict(f"User {new_username} already exists")

                hashes = {}
                for t in types:
                    if new_hash is not None:
                        hashes[t] = new_hash
                    elif t in existing:
                        hashes[t] = existing[t].password_hash
                    else:
                        raise ValidationError(f"Password required to grant {t} access")

                tx.delete_all(old_username)
                for t in types:
                    tx.insert(new_username, hashes[t], t)
        except DuplicateRecord:
            raise Conflict(f"User {new_username} already exists") from None

        log.info(kv(
            "user replaced",
            user=old_username,
            new_user=new_username if new_username != old_username else None,
            admin_type=",".join(types),
            password_changed="yes" if new_hash else None,
        ))
        return GroupedUser(new_username, types)

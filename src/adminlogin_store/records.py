from dataclasses import dataclass


@dataclass(frozen=True)
class CredentialRecord:
    """One persisted (username, password hash, admin type) row."""

    username: str
    password_hash: str
    admin_type: str
    created_at: int = 0
    updated_at: int = 0

    @classmethod
    def from_row(cls, row) -> "CredentialRecord":
        return cls(
            username=row["username"],
            password_hash=row["password_hash"],
            admin_type=row["admin_type"],
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
        )

    def __repr__(self) -> str:
        # never show the hash
        return f"CredentialRecord(username={self.username!r}, admin_type={self.admin_type!r})"

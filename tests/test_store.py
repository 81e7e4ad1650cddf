import pytest

from adminlogin_store.store import CredentialStore, DuplicateRecord, StoreError


def test_open_close_lifecycle(tmp_path):
    path = str(tmp_path / "db" / "credentials.db")
    with CredentialStore(path) as store:
        assert store.is_open
        with store.transaction() as tx:
            tx.insert("alice", "hash", "camp")
    assert not store.is_open

    # data survives reopening
    with CredentialStore(path) as store:
        record = store.get("alice", "camp")
        assert record is not None
        assert record.password_hash == "hash"


def test_closed_store_raises_store_error():
    store = CredentialStore(":memory:")
    with pytest.raises(StoreError):
        store.all()


def test_unique_username_admin_type(store):
    with store.transaction() as tx:
        tx.insert("alice", "h1", "camp")
    with pytest.raises(DuplicateRecord):
        with store.transaction() as tx:
            tx.insert("alice", "h2", "camp")
    assert len(store.all()) == 1


def test_transaction_rolls_back_on_error(store):
    with pytest.raises(RuntimeError):
        with store.transaction() as tx:
            tx.insert("bob", "h", "camp")
            tx.insert("bob", "h", "enroll")
            raise RuntimeError("boom")
    assert store.find_by_username("bob") == []


def test_update_and_delete(store):
    with store.transaction() as tx:
        tx.insert("carol", "h", "camp")
        tx.insert("carol", "h", "enroll")
    with store.transaction() as tx:
        assert tx.update("carol", "camp", new_username="caroline") == 1
        assert tx.update("nobody", "camp", new_password_hash="x") == 0
    assert store.get("caroline", "camp") is not None
    with store.transaction() as tx:
        assert tx.delete_one("caroline", "camp") == 1
        assert tx.delete_all("carol") == 1
    assert store.all() == []


def test_record_repr_hides_hash(store):
    with store.transaction() as tx:
        record = tx.insert("dave", "secret-hash", "enroll")
    assert "secret-hash" not in repr(record)


def test_failed_commit_leaves_store_usable(store):
    # deferred foreign keys are only checked at COMMIT
    conn = store._conn
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("CREATE TABLE parent(id INTEGER PRIMARY KEY)")
    conn.execute(
        "CREATE TABLE child(parent_id INTEGER REFERENCES parent(id) DEFERRABLE INITIALLY DEFERRED)"
    )

    with pytest.raises(StoreError):
        with store.transaction() as tx:
            tx.insert("alice", "h", "camp")
            tx._conn.execute("INSERT INTO child(parent_id) VALUES (99)")

    assert not conn.in_transaction
    assert store.all() == []
    with store.transaction() as tx:
        tx.insert("alice", "h", "camp")
    assert len(store.all()) == 1

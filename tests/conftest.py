"""
Admin login portal - test configuration and fixtures
"""
import os

import pytest

# Keep test runs off /var/log and the real database
os.environ['ADMINLOGIN_LOG_FILE'] = '0'
os.environ['ADMINLOGIN_LOG_LEVEL'] = 'WARNING'
os.environ['PASSWORD_HASH_METHOD'] = 'pbkdf2:sha256:1000'

from adminlogin_store.store import CredentialStore
from adminlogin_web.app_impl import create_app
from adminlogin_web.credentials import CredentialService


@pytest.fixture
def store():
    """Fresh in-memory credential store for each test"""
    s = CredentialStore(":memory:").open()
    yield s
    s.close()


@pytest.fixture
def service(store):
    return CredentialService(store)


@pytest.fixture
def app(store, tmp_path):
    static_dir = tmp_path / "static"
    static_dir.mkdir()
    (static_dir / "login.html").write_text("<form id=\"loginForm\"></form>", encoding="utf-8")
    return create_app(
        store=store,
        TESTING=True,
        SECRET_KEY="test-secret-key-for-testing-only",
        STATIC_DIR=str(static_dir),
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def guarded_client(store, tmp_path):
    """Client for an app that requires a logged-in admin for user management"""
    app = create_app(
        store=store,
        TESTING=True,
        SECRET_KEY="test-secret-key-for-testing-only",
        STATIC_DIR=str(tmp_path),
        REQUIRE_ADMIN_SESSION=True,
    )
    return app.test_client()

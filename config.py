import os
import secrets
from pathlib import Path

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))


def _load_env_file(path: str) -> None:
    """Best-effort parser for .env-style KEY=VALUE files.

    Existing os.environ keys are NOT overridden.
    """
    try:
        with open(path, 'r', encoding='utf-8', errors='ignore') as f:
            for raw in f:
                line = raw.strip()
                if not line or line.startswith('#'):
                    continue
                # allow "export KEY=VALUE"
                if line.startswith('export '):
                    line = line[len('export '):].lstrip()
                if '=' not in line:
                    continue
                key, val = line.split('=', 1)
                key = key.strip()
                val = val.strip()
                if not key or key in os.environ:
                    continue
                if (len(val) >= 2) and ((val[0] == val[-1]) and val[0] in ('"', "'")):
                    val = val[1:-1]
                os.environ[key] = val
    except (FileNotFoundError, IsADirectoryError, PermissionError):
        return


_DEFAULT_ENV_CANDIDATES = [
    os.environ.get('ADMINLOGIN_ENV_FILE', '').strip(),
    os.path.join(PROJECT_ROOT, '.env'),
]
for _p in _DEFAULT_ENV_CANDIDATES:
    if _p:
        _load_env_file(_p)


def _env(key: str, default=None):
    val = os.environ.get(key)
    return default if val is None else val


def env_str(key: str, default: str = "") -> str:
    return str(_env(key, default))


def env_int(key: str, default: int) -> int:
    val = _env(key, None)
    if val is None or str(val).strip() == "":
        return int(default)
    try:
        return int(str(val).strip())
    except ValueError:
        return int(default)


def env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, None)
    if val is None:
        return bool(default)
    s = str(val).strip().lower()
    if s in ("1", "true", "yes", "y", "on", "enable", "enabled"):
        return True
    if s in ("0", "false", "no", "n", "off", "disable", "disabled"):
        return False
    return bool(default)


def env_list(key: str, default: str = "") -> list:
    return [p.strip() for p in env_str(key, default).split(',') if p.strip()]


# ---- Paths ----
DATA_DIR = env_str('ADMINLOGIN_DATA_DIR', os.path.join(PROJECT_ROOT, 'data'))
DB_PATH = env_str('ADMINLOGIN_DB_PATH', os.path.join(DATA_DIR, 'credentials.db'))
SESSION_SECRET_FILE = os.path.join(DATA_DIR, 'flask.secret')
STATIC_DIR = env_str('ADMINLOGIN_STATIC_DIR', os.path.join(PROJECT_ROOT, 'static'))

# ---- Network ----
ADMIN_BIND = env_str('ADMIN_BIND', '0.0.0.0')
ADMIN_PORT = env_int('PORT', 3000)

# ---- Session / access ----
SESSION_TIMEOUT = env_int('SESSION_TIMEOUT', 1800)
REQUIRE_ADMIN_SESSION = env_bool('REQUIRE_ADMIN_SESSION', False)
CORS_ORIGINS = env_list('CORS_ORIGINS', '*')

# ---- Password hashing ----
PASSWORD_HASH_METHOD = env_str('PASSWORD_HASH_METHOD', 'pbkdf2:sha256').strip() or 'pbkdf2:sha256'

# ---- Post-login redirects (one per admin type) ----
CAMP_ADMIN_URL = env_str('CAMP_ADMIN_URL', '').strip()
ENROLL_ADMIN_URL = env_str('ENROLL_ADMIN_URL', '').strip()

# ---- Logging ----
ADMINLOGIN_LOG_DIR = env_str('ADMINLOGIN_LOG_DIR', '').strip()
ADMINLOGIN_LOG_LEVEL = env_str('ADMINLOGIN_LOG_LEVEL', 'INFO').strip()
ADMINLOGIN_LOG_RETENTION_MONTHS = env_str('ADMINLOGIN_LOG_RETENTION_MONTHS', '12').strip()


def _load_or_create_secret(path: str, *, length_bytes: int = 32) -> str:
    """Load a secret from disk, or create it once (atomically).

    Keeps the session signing key stable across restarts and across
    gunicorn workers when SESSION_SECRET is not set.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if p.exists():
        return p.read_text(encoding='utf-8').strip()

    # Atomic create: either we create, or another process beats us and we read.
    secret = secrets.token_hex(length_bytes)
    try:
        fd = os.open(str(p), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(secret + "\n")
        return secret
    except FileExistsError:
        return p.read_text(encoding='utf-8').strip()


def get_session_secret() -> str:
    """Return the cookie signing key.

    env SESSION_SECRET overrides the disk-backed default.
    """
    env_val = env_str('SESSION_SECRET', '').strip()
    if env_val:
        return env_val
    return _load_or_create_secret(SESSION_SECRET_FILE, length_bytes=32)

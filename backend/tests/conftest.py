"""Shared test configuration.

The API tests run against a throwaway SQLite file so no PostgreSQL
server is needed. The environment must be set before ``firewire.config``
builds its cached settings.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="firewire-tests-")

os.environ.setdefault(
    "DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'api.db')}"
)
os.environ.setdefault("AUTO_CREATE_TABLES", "true")

from __future__ import annotations

from formbuilder.config import Settings, ensure_dirs
from formbuilder.protocols import Storage
from formbuilder.repo_json import JSONStorage
from formbuilder.repo_sqlite import SQLiteStorage


def init_storage(settings: Settings) -> Storage:
    ensure_dirs(settings)
    if settings.storage_backend == "json":
        return JSONStorage(settings.json_path)
    return SQLiteStorage(settings.database_url)

# foldermatch/project.py
"""Project files: a scan session's cache persisted as a small SQLite database."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import ProjectError
from .models import FolderInfo, ProjectData
from .util import as_utc

APPLICATION_NAME = "foldermatch"
PROJECT_VERSION = "1.0"
PROJECT_EXTENSION = ".dfp"

DDL = r"""
CREATE TABLE IF NOT EXISTS project_meta (
  key TEXT PRIMARY KEY,
  value TEXT
);
CREATE TABLE IF NOT EXISTS scan_roots (
  position INTEGER PRIMARY KEY,
  path TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS folders (
  path TEXT PRIMARY KEY,
  total_size INTEGER NOT NULL,
  latest_mtime_utc TEXT
);
CREATE TABLE IF NOT EXISTS folder_files (
  folder TEXT NOT NULL,
  position INTEGER NOT NULL,
  path TEXT NOT NULL,
  PRIMARY KEY (folder, position)
);
CREATE TABLE IF NOT EXISTS file_hashes (
  path TEXT PRIMARY KEY,
  digest TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_folder_files_folder ON folder_files(folder);
"""

TABLES = ("project_meta", "scan_roots", "folders", "folder_files", "file_hashes")

PathLike = Union[str, Path]


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(str(db_path))
    con.execute("PRAGMA journal_mode=WAL;")
    con.execute("PRAGMA synchronous=NORMAL;")
    con.execute("PRAGMA busy_timeout=5000;")
    return con


def open_existing(db_path: Path) -> sqlite3.Connection:
    # no pragmas, no parent creation; only for reading files that exist
    return sqlite3.connect(str(db_path))


def migrate(con: sqlite3.Connection) -> None:
    con.executescript(DDL)
    con.commit()


def _has_schema(con: sqlite3.Connection) -> bool:
    rows = con.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return set(TABLES) <= {row[0] for row in rows}


def _ts(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))


def save_project(path: PathLike, data: ProjectData) -> None:
    """Write ``data`` to ``path``, replacing whatever the file held before."""
    data.application_name = APPLICATION_NAME
    if data.created_date is None:
        data.created_date = datetime.now(tz=timezone.utc)
    try:
        con = connect(Path(path))
        try:
            migrate(con)
            cur = con.cursor()
            for table in TABLES:
                cur.execute(f"DELETE FROM {table}")
            cur.executemany(
                "INSERT INTO project_meta(key, value) VALUES(?, ?)",
                [
                    ("version", data.version or PROJECT_VERSION),
                    ("application_name", data.application_name),
                    ("created_date", _ts(data.created_date)),
                ],
            )
            cur.executemany(
                "INSERT INTO scan_roots(position, path) VALUES(?, ?)",
                list(enumerate(data.scan_folders)),
            )
            cur.executemany(
                "INSERT INTO folders(path, total_size, latest_mtime_utc) VALUES(?, ?, ?)",
                [
                    (folder, info.total_size, _ts(info.latest_modification_date))
                    for folder, info in data.folder_info.items()
                ],
            )
            folder_files: Dict[str, List[str]] = dict(data.folder_files)
            for folder, info in data.folder_info.items():
                folder_files.setdefault(folder, list(info.files))
            cur.executemany(
                "INSERT INTO folder_files(folder, position, path) VALUES(?, ?, ?)",
                [
                    (folder, position, file_path)
                    for folder, files in folder_files.items()
                    for position, file_path in enumerate(files)
                ],
            )
            cur.executemany(
                "INSERT INTO file_hashes(path, digest) VALUES(?, ?)",
                list(data.file_hashes.items()),
            )
            con.commit()
        finally:
            con.close()
    except (sqlite3.Error, OSError) as e:
        raise ProjectError(f"Failed to save project: {e}") from e


def load_project(path: PathLike) -> ProjectData:
    db_path = Path(path)
    if not db_path.is_file():
        raise ProjectError(f"Failed to load project: Project file not found: {db_path}")
    try:
        con = open_existing(db_path)
        try:
            if not _has_schema(con):
                raise ProjectError("Failed to load project: Invalid project file format")
            meta = dict(con.execute("SELECT key, value FROM project_meta").fetchall())
            roots = [row[0] for row in con.execute("SELECT path FROM scan_roots ORDER BY position")]

            folder_files: Dict[str, List[str]] = {}
            for folder, file_path in con.execute("SELECT folder, path FROM folder_files ORDER BY folder, position"):
                folder_files.setdefault(folder, []).append(file_path)

            folder_info: Dict[str, FolderInfo] = {}
            for folder, total_size, latest in con.execute("SELECT path, total_size, latest_mtime_utc FROM folders"):
                folder_info[folder] = FolderInfo(
                    files=list(folder_files.get(folder, [])),
                    total_size=int(total_size),
                    latest_modification_date=_parse_ts(latest),
                )
            hashes = dict(con.execute("SELECT path, digest FROM file_hashes").fetchall())
        finally:
            con.close()
    except (sqlite3.Error, OSError, ValueError) as e:
        raise ProjectError(f"Failed to load project: {e}") from e

    return ProjectData(
        scan_folders=roots,
        folder_info=folder_info,
        folder_files=folder_files,
        file_hashes=hashes,
        created_date=_parse_ts(meta.get("created_date")),
        version=meta.get("version") or PROJECT_VERSION,
        # older files carry no application name
        application_name=meta.get("application_name") or APPLICATION_NAME,
    )


def is_valid_project_file(path: PathLike) -> bool:
    db_path = Path(path)
    if db_path.suffix.lower() != PROJECT_EXTENSION or not db_path.is_file():
        return False
    try:
        con = open_existing(db_path)
        try:
            return _has_schema(con)
        finally:
            con.close()
    except sqlite3.Error:
        return False

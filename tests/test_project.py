import sqlite3
from datetime import datetime, timezone

import pytest

from foldermatch.errors import ProjectError
from foldermatch.export import export_project
from foldermatch.models import FolderInfo, ProjectData
from foldermatch.project import APPLICATION_NAME, is_valid_project_file, load_project, save_project

WHEN = datetime(2020, 2, 2, 12, 30, tzinfo=timezone.utc)


def _data():
    return ProjectData(
        scan_folders=["C:\\Backups", "D:\\Old"],
        folder_info={
            "C:\\Backups\\A": FolderInfo(["C:\\Backups\\A\\x.txt", "C:\\Backups\\A\\y.txt"], 30, WHEN),
            "C:\\Backups\\Empty": FolderInfo([], 0, None),
        },
        folder_files={
            "C:\\Backups\\A": ["C:\\Backups\\A\\x.txt", "C:\\Backups\\A\\y.txt"],
            "C:\\Backups\\Empty": [],
        },
        file_hashes={"C:\\Backups\\A\\x.txt": "deadbeef"},
        created_date=WHEN,
    )


def test_round_trip(tmp_path):
    path = tmp_path / "p" / "project.dfp"
    data = _data()
    save_project(path, data)

    loaded = load_project(path)

    assert loaded.scan_folders == data.scan_folders
    assert loaded.folder_info == data.folder_info
    assert loaded.folder_files["C:\\Backups\\A"] == data.folder_files["C:\\Backups\\A"]
    assert loaded.file_hashes == data.file_hashes
    assert loaded.created_date == WHEN
    assert loaded.version == "1.0"
    assert loaded.application_name == APPLICATION_NAME


def test_save_stamps_application_name_and_replaces_contents(tmp_path):
    path = tmp_path / "project.dfp"
    save_project(path, _data())
    smaller = ProjectData(scan_folders=["E:\\New"], application_name="something else")
    save_project(path, smaller)

    loaded = load_project(path)
    assert smaller.application_name == APPLICATION_NAME
    assert loaded.scan_folders == ["E:\\New"]
    assert loaded.folder_info == {}
    assert loaded.file_hashes == {}
    assert loaded.created_date is not None


def test_legacy_file_without_application_name(tmp_path):
    path = tmp_path / "legacy.dfp"
    save_project(path, _data())
    con = sqlite3.connect(str(path))
    con.execute("DELETE FROM project_meta WHERE key = 'application_name'")
    con.commit()
    con.close()

    assert load_project(path).application_name == APPLICATION_NAME


def test_load_missing_file(tmp_path):
    with pytest.raises(ProjectError, match="not found"):
        load_project(tmp_path / "missing.dfp")


def test_load_garbage_file(tmp_path):
    path = tmp_path / "garbage.dfp"
    path.write_text("this is not a database")
    with pytest.raises(ProjectError):
        load_project(path)


def test_load_foreign_sqlite_file(tmp_path):
    path = tmp_path / "other.dfp"
    con = sqlite3.connect(str(path))
    con.execute("CREATE TABLE unrelated (x INTEGER)")
    con.commit()
    con.close()
    with pytest.raises(ProjectError, match="Invalid project file format"):
        load_project(path)
    assert not is_valid_project_file(path)


def test_is_valid_project_file(tmp_path):
    good = tmp_path / "good.dfp"
    save_project(good, _data())
    wrong_ext = tmp_path / "good.db"
    save_project(wrong_ext, _data())
    garbage = tmp_path / "garbage.dfp"
    garbage.write_text("nope")

    assert is_valid_project_file(good)
    assert not is_valid_project_file(wrong_ext)
    assert not is_valid_project_file(garbage)
    assert not is_valid_project_file(tmp_path / "missing.dfp")


def test_export_rejects_missing_and_foreign_files(tmp_path):
    with pytest.raises(ProjectError):
        export_project(tmp_path / "missing.dfp", tmp_path / "out")
    foreign = tmp_path / "foreign.dfp"
    foreign.write_text("nope")
    with pytest.raises(ProjectError):
        export_project(foreign, tmp_path / "out")

from __future__ import annotations

from pathlib import Path

from mockup_server.watcher import FileWatcher


def test_poll_reports_changed_added_and_removed_files(tmp_path: Path) -> None:
    routes_file = tmp_path / "routes.yaml"
    routes_file.write_text("[]\n", encoding="utf-8")
    database = tmp_path / "database"
    database.mkdir()
    stale = database / "OLD.json"
    stale.write_text("{}", encoding="utf-8")

    notified: list[str] = []
    watcher = FileWatcher({"routes": routes_file, "database": database}, notified.append)

    assert watcher.poll() == []

    routes_file.write_text("- {path: /ping, active: true}\n", encoding="utf-8")
    (database / "USER.json").write_text('{"id": 1}', encoding="utf-8")
    stale.unlink()

    changed = watcher.poll()

    assert set(changed) == {str(routes_file), str(database / "USER.json"), str(stale)}
    assert notified == changed
    assert watcher.poll() == []


def test_missing_paths_are_tolerated(tmp_path: Path) -> None:
    watcher = FileWatcher({"database": tmp_path / "absent"}, lambda path: None)

    assert watcher.poll() == []

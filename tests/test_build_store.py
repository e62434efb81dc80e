"""Tests for core.build_store."""

import os

import pytest

from conftest import MAIN_PATH, plugin_tree

OLD = "plugin-1700000000000-aaaaaa"
NEW = "plugin-1800000000000-bbbbbb"


def _make_jar(store, build_id, name="healonjoin-1.0.jar"):
    target = os.path.join(store.build_dir(build_id), "target")
    os.makedirs(target, exist_ok=True)
    path = os.path.join(target, name)
    with open(path, "wb") as fp:
        fp.write(b"PK")
    return path


def test_write_files_and_walk(store):
    store.create(OLD, "heal players")
    store.write_files(OLD, plugin_tree())
    _make_jar(store, OLD)
    walked = store.walk_files(OLD)
    assert MAIN_PATH in walked
    assert "prompt.txt" in walked
    assert not any(p.startswith("target/") for p in walked)


def test_write_files_rejects_escaping_paths(store):
    with pytest.raises(ValueError):
        store.write_files(OLD, {"../evil.txt": "x"})


def test_invalid_build_id_rejected(store):
    with pytest.raises(ValueError):
        store.build_dir("../etc")


def test_status_pending_without_anything(store):
    store.create(OLD)
    status = store.status(OLD)
    assert status["status"] == "pending"
    assert status["jarFile"] is None
    assert status["downloadUrl"] is None


def test_status_from_jar_and_target(store):
    store.create(OLD)
    os.makedirs(os.path.join(store.build_dir(OLD), "target"))
    assert store.status(OLD)["status"] == "failed"
    _make_jar(store, OLD)
    status = store.status(OLD)
    assert status["status"] == "completed"
    assert status["jarFile"] == "healonjoin-1.0.jar"
    assert status["downloadUrl"] == f"/api/build/download/{OLD}"


def test_result_file_wins(store):
    store.mark_pending(OLD)
    _make_jar(store, OLD)
    assert store.status(OLD)["status"] == "pending"
    store.write_result(OLD, {"status": "failed", "success": False})
    assert store.status(OLD)["status"] == "failed"
    assert store.status(OLD)["jarFile"] is None


def test_degraded_build_serves_unshaded_jar(store):
    _make_jar(store, OLD, "original-healonjoin-1.0.jar")
    assert store.find_jar(OLD) is None
    store.write_result(OLD, {"status": "completed", "success": True, "degraded": True})
    assert store.find_jar(OLD).endswith("original-healonjoin-1.0.jar")
    assert store.status(OLD)["degraded"] is True


def test_plugin_name(store):
    store.write_files(OLD, plugin_tree())
    assert store.plugin_name(OLD) == "HealOnJoin"
    store.create(NEW)
    assert store.plugin_name(NEW) == "Unknown"


def test_list_plugins_newest_first(store):
    store.create(OLD, "old plugin")
    store.create(NEW, "x" * 150)
    os.makedirs(os.path.join(store.base_dir, "not a build id"))
    plugins = store.list_plugins()
    assert [p["buildId"] for p in plugins] == [NEW, OLD]
    assert plugins[0]["prompt"] == "x" * 100 + "..."
    assert plugins[1]["createdAt"].startswith("2023-11-14")


def test_list_plugins_without_root(tmp_path):
    from core.build_store import BuildStore
    assert BuildStore(str(tmp_path / "missing")).list_plugins() == []


def test_plugin_details(store):
    store.create(OLD, "heal players")
    store.write_files(OLD, plugin_tree())
    _make_jar(store, OLD)
    details = store.plugin_details(OLD)
    assert details["name"] == "HealOnJoin"
    assert details["status"] == "completed"
    assert details["fileContents"][MAIN_PATH] == plugin_tree()[MAIN_PATH]
    assert details["prompt"] == "heal players"
    assert details["fileCount"] == len(plugin_tree()) + 1

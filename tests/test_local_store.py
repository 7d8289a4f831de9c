import pytest

from trivia_app.core.services.local_store import JsonFileStore, MemoryStore


def test_memory_store_copies_values():
    store = MemoryStore()
    value = {"items": [1, 2]}
    store.set("key", value)
    value["items"].append(3)

    loaded = store.get("key")
    loaded["items"].append(4)

    assert store.get("key") == {"items": [1, 2]}
    assert store.keys() == ["key"]


def test_memory_store_missing_key_and_delete():
    store = MemoryStore({"a": 1})

    assert store.get("missing") is None
    store.delete("a")
    store.delete("a")
    assert store.get("a") is None


def test_json_file_store_persists_across_instances(tmp_path):
    JsonFileStore(tmp_path).set("trivia_stats", {"Sigga": {"totalGames": 2}})

    reopened = JsonFileStore(tmp_path)

    assert reopened.get("trivia_stats") == {"Sigga": {"totalGames": 2}}
    assert (tmp_path / "trivia_stats.json").exists()
    assert not list(tmp_path.glob("*.tmp"))


def test_json_file_store_keeps_unicode(tmp_path):
    store = JsonFileStore(tmp_path)
    store.set("words", ["Eyjafjallajökull", "Þingvellir"])

    assert store.get("words") == ["Eyjafjallajökull", "Þingvellir"]
    assert "Þingvellir" in (tmp_path / "words.json").read_text(encoding="utf-8")


def test_json_file_store_treats_corrupt_file_as_missing(tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    assert JsonFileStore(tmp_path).get("broken") is None


def test_json_file_store_delete(tmp_path):
    store = JsonFileStore(tmp_path)
    store.set("key", [1])
    store.delete("key")
    store.delete("key")

    assert store.get("key") is None


def test_json_file_store_rejects_path_like_keys(tmp_path):
    store = JsonFileStore(tmp_path / "data")

    with pytest.raises(ValueError):
        store.set("../escape", {})

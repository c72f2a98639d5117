import json

from canopy.domain.shared import Err, Ok
from canopy.infrastructure.storage import JsonStorage


def test_save_then_load(tmp_path):
    storage = JsonStorage()
    path = tmp_path / "nested" / "doc.json"

    assert storage.save_json(path, {"tasks": [1, 2]}) == Ok(None)
    assert storage.load_json(path) == Ok({"tasks": [1, 2]})
    assert [p.name for p in path.parent.iterdir()] == ["doc.json"]


def test_load_errors(tmp_path):
    storage = JsonStorage()
    assert isinstance(storage.load_json(tmp_path / "missing.json"), Err)

    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf-8")
    result = storage.load_json(listing)
    assert isinstance(result, Err)
    assert "Expected a JSON object" in result.error


def test_unserializable_data_keeps_previous_document(tmp_path):
    storage = JsonStorage()
    path = tmp_path / "doc.json"
    storage.save_json(path, {"version": 1})

    result = storage.save_json(path, {"version": object()})

    assert isinstance(result, Err)
    assert json.loads(path.read_text(encoding="utf-8")) == {"version": 1}

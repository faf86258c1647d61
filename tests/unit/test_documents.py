from parley.lib.documents import JsonDocument


def test_missing_file_reads_empty(tmp_path):
    assert JsonDocument(tmp_path / "nope.json").read() == {}


def test_write_then_read(tmp_path):
    doc = JsonDocument(tmp_path / "sub" / "agents.json")
    doc.write({"a": {"name": "Dev"}})

    assert doc.exists()
    assert doc.read() == {"a": {"name": "Dev"}}
    assert list((tmp_path / "sub").iterdir()) == [tmp_path / "sub" / "agents.json"]


def test_corrupt_file_reads_empty(tmp_path, caplog):
    path = tmp_path / "agents.json"
    path.write_text("{not json")

    assert JsonDocument(path).read() == {}
    assert "corrupted" in caplog.text


def test_non_object_reads_empty(tmp_path):
    path = tmp_path / "agents.json"
    path.write_text("[1, 2]")
    assert JsonDocument(path).read() == {}


def test_write_replaces_whole_document(tmp_path):
    doc = JsonDocument(tmp_path / "agents.json")
    doc.write({"a": 1, "b": 2})
    doc.write({"c": 3})
    assert doc.read() == {"c": 3}

import sys

import orjson
import pytest

import pipeline


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["pipeline.py", *argv])
    pipeline.main()


class TestPromptCommand:
    def test_renders_hits_file_offline(self, monkeypatch, tmp_path, capsys):
        hits_file = tmp_path / "hits.json"
        hits_file.write_bytes(orjson.dumps({"hits": [
            {
                "filename": "Shivam Interview A Roll",
                "content": "one million debt when I was 19",
                "timestamp": "00:00:00.001 – 00:00:01.760",
            },
        ]}))

        _run(monkeypatch, "prompt", "career sacrifices", "--hits", str(hits_file))

        out = capsys.readouterr().out
        assert 'FILE: "Shivam Interview A Roll"' in out
        assert "[00:00:00.001 – 00:00:01.760]" in out

    def test_bad_json_exits_with_message(self, monkeypatch, tmp_path, capsys):
        hits_file = tmp_path / "hits.json"
        hits_file.write_text("{not json")

        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "prompt", "career sacrifices", "--hits", str(hits_file))

        assert exc.value.code == 1
        assert "is not valid JSON" in capsys.readouterr().err


class TestConfigurationErrors:
    def test_missing_search_settings(self, monkeypatch, capsys):
        monkeypatch.delenv("SEARCH_ENDPOINT", raising=False)
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "search", "debt")
        assert exc.value.code == 1
        assert "SEARCH_ENDPOINT is not configured" in capsys.readouterr().err


def test_no_command_prints_help(monkeypatch):
    with pytest.raises(SystemExit):
        _run(monkeypatch)

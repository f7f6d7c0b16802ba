from __future__ import annotations

import json

import pytest

from lms_analyzer.main import main

QUIZ = """<questestinterop><item ident="q1" title="One"><presentation>
<response_lid ident="r" rcardinality="Multiple"><render_choice>
<response_label ident="a"/><response_label ident="b"/><response_label ident="c"/>
</render_choice></response_lid></presentation></item></questestinterop>
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("LMS_ANALYZER_ARTIFACTS_DIR", raising=False)


def _settings_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(f"analysis:\n  artifacts_dir: {tmp_path / 'artifacts'}\n", encoding="utf-8")
    return path


def test_cli_prints_report(tmp_path, capsys):
    source = tmp_path / "quiz.xml"
    source.write_text(QUIZ, encoding="utf-8")
    code = main(["--input", str(source), "--settings", str(_settings_file(tmp_path)), "--print"])
    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["question_summary"]["by_type"] == {"Multiple Answers": 1}
    assert (tmp_path / "artifacts" / report["analysis_id"]).is_dir()


def test_cli_artifacts_dir_override(tmp_path, capsys):
    source = tmp_path / "quiz.xml"
    source.write_text(QUIZ, encoding="utf-8")
    out_dir = tmp_path / "elsewhere"
    code = main(["--input", str(source), "--settings", str(_settings_file(tmp_path)), "--artifacts-dir", str(out_dir)])
    assert code == 0
    assert "Report written for" in capsys.readouterr().out
    assert out_dir.is_dir()


def test_cli_missing_input(tmp_path, capsys):
    code = main(["--input", str(tmp_path / "missing.xml"), "--settings", str(_settings_file(tmp_path))])
    assert code == 1
    assert "error:" in capsys.readouterr().err

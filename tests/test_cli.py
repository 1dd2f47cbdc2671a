import json

import pytest
from typer.testing import CliRunner

from atlas_assistant.application.cli.chat_cli import app

from conftest import build_document, make_record

runner = CliRunner()


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "atlas.json"
    document = build_document(filler=2)
    document["result"] += [make_record("updateContactTypeV1"), make_record("applyResolutionV1")]
    path.write_text(json.dumps(document))
    return str(path)


def test_actions_list(catalog_file) -> None:
    result = runner.invoke(app, ["actions", "--list", "--catalog", catalog_file])

    assert result.exit_code == 0
    listed = [entry["type"] for entry in json.loads(result.output)]
    assert "refundOrderV1" in listed
    assert len(listed) == 13


def test_actions_for_request(catalog_file) -> None:
    result = runner.invoke(app, ["actions", "food", "tampering", "--catalog", catalog_file])

    assert result.exit_code == 0
    payloads = json.loads(result.output)["actions"]
    assert [p["actionType"] for p in payloads] == [
        "updateContactTypeV1", "applyResolutionV1", "addMessageV1", "updateContactStatusV1"
    ]


def test_actions_requires_request(catalog_file) -> None:
    result = runner.invoke(app, ["actions", "--catalog", catalog_file])

    assert result.exit_code == 2


def test_missing_catalog_exits(tmp_path) -> None:
    result = runner.invoke(app, ["actions", "--list", "--catalog", str(tmp_path / "missing.json")])

    assert result.exit_code == 1
    assert "Error loading catalog" in result.output

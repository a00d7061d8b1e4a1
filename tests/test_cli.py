"""CLI commands via typer's CliRunner."""

import json

import pytest
from typer.testing import CliRunner

from relayflow.cli.main import app
from relayflow.version import __version__

runner = CliRunner()

GOOD = """
name: Greeter
nodes:
  - id: t1
    type: trigger
    label: Start
    config:
      triggerType: Manual
  - id: remember
    type: action
    config:
      actionType: Set Variable
      variableKey: sender
      variableValue: "{{@t1:Start.from}}"
  - id: wait
    type: action
    config:
      actionType: Delay
      delayMs: 1
edges:
  - from: t1
    to: remember
  - from: remember
    to: wait
"""

CYCLIC = """
name: Loop
nodes:
  - {id: t1, type: trigger}
  - {id: a, type: action, config: {actionType: Delay}}
  - {id: b, type: action, config: {actionType: Delay}}
edges:
  - {source: t1, target: a}
  - {source: a, target: b}
  - {source: b, target: a}
"""


@pytest.fixture
def workflow_file(tmp_path):
    def _write(text, name="workflow.yaml"):
        path = tmp_path / name
        path.write_text(text)
        return str(path)
    return _write


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_validate_valid_workflow(workflow_file):
    result = runner.invoke(app, ["validate", workflow_file(GOOD)])
    assert result.exit_code == 0
    assert "Greeter is valid" in result.output


def test_validate_reports_cycle(workflow_file):
    result = runner.invoke(app, ["validate", workflow_file(CYCLIC)])
    assert result.exit_code == 1
    assert "Cycle" in result.output


def test_validate_missing_file(tmp_path):
    result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1


def test_run_prints_json_result(workflow_file):
    result = runner.invoke(app, [
        "run", workflow_file(GOOD), "--input", '{"from": "+5511987654321"}', "--json",
    ])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["success"] is True
    assert payload["results"]["remember"]["data"] == {"key": "sender", "value": "+5511987654321"}


def test_run_rejects_cyclic_workflow(workflow_file):
    result = runner.invoke(app, ["run", workflow_file(CYCLIC)])
    assert result.exit_code == 1


def test_run_rejects_bad_input_json(workflow_file):
    result = runner.invoke(app, ["run", workflow_file(GOOD), "--input", "{broken"])
    assert result.exit_code == 1


def test_capabilities_lists_builtins():
    result = runner.invoke(app, ["capabilities"])
    assert result.exit_code == 0
    assert "HTTP Request" in result.output
    assert "Database Query" in result.output
    assert "Set Variable" in result.output
    assert "Delay" in result.output


def test_config_masks_password(monkeypatch):
    monkeypatch.setenv("RELAYFLOW_DATABASE_URL", "postgresql+asyncpg://relay:s3cret@db/relay")
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert "s3cret" not in result.output

import pytest
from rich.console import Console

import appforge.core as core_module
from appforge.core import DatabaseTransfer, ScriptRunner
from appforge.models import TransferSpec
from appforge.services.prompts import PromptService
from fakes import FakeDatabaseTools, FakeMongoServer, FakeSubprocess


@pytest.fixture(autouse=True)
def quiet_console(monkeypatch):
    monkeypatch.setattr(core_module, "console", Console(quiet=True))


@pytest.fixture
def server():
    return FakeMongoServer({"shop": {"orders": [{"_id": 1}], "users": [{"_id": "u1"}]}})


def prompt_service(answer=True):
    return PromptService(console=Console(quiet=True), confirm=lambda *_args, **_kwargs: answer)


def build_transfer(tmp_path, server, spec, direction, tools=None, answer=True, assume_yes=False):
    return DatabaseTransfer(
        spec,
        direction=direction,
        assume_yes=assume_yes,
        cwd=str(tmp_path),
        command_runner=tools or FakeDatabaseTools(server),
        mongo_client_factory=server.client,
        prompt_service=prompt_service(answer),
    )


def test_backup_reports_all_missing_parameters_without_side_effects(tmp_path, server):
    tools = FakeDatabaseTools(server)
    transfer = build_transfer(
        tmp_path, server, TransferSpec.from_options(None, None), "export", tools=tools
    )

    assert transfer.run() == 1
    assert tools.commands == []
    assert server.uris == []


def test_backup_writes_database_directory(tmp_path, server):
    spec = TransferSpec.from_options("mongodb://localhost/shop", str(tmp_path / "backups"))

    assert build_transfer(tmp_path, server, spec, "export").run() == 0
    assert (tmp_path / "backups" / "shop" / "orders.bson").exists()


def test_restore_with_clear_asks_first_and_declining_changes_nothing(tmp_path, server):
    backup = TransferSpec.from_options("mongodb://localhost/shop", str(tmp_path))
    assert build_transfer(tmp_path, server, backup, "export").run() == 0

    server.databases["shop"]["orders"] = [{"_id": "live"}]
    tools = FakeDatabaseTools(server)
    restore = TransferSpec.from_options("mongodb://localhost/shop", str(tmp_path), clear=True)

    assert build_transfer(tmp_path, server, restore, "import", tools=tools, answer=False).run() == 0
    assert server.databases["shop"]["orders"] == [{"_id": "live"}]
    assert tools.tool_calls("mongorestore") == []


def test_restore_with_clear_and_yes_replaces_data(tmp_path, server):
    backup = TransferSpec.from_options("mongodb://localhost/shop", str(tmp_path))
    assert build_transfer(tmp_path, server, backup, "export").run() == 0

    server.databases["shop"]["orders"] = [{"_id": "live"}]
    restore = TransferSpec.from_options("mongodb://localhost/shop", str(tmp_path), clear=True)

    assert build_transfer(tmp_path, server, restore, "import", answer=False, assume_yes=True).run() == 0
    assert server.databases["shop"]["orders"] == [{"_id": 1}]


def test_restore_from_missing_path_is_a_validation_error(tmp_path, server):
    spec = TransferSpec.from_options("mongodb://localhost/shop", str(tmp_path / "nowhere"))

    assert build_transfer(tmp_path, server, spec, "import").run() == 1


def test_outdated_tools_fail_before_any_transfer(tmp_path, server):
    tools = FakeDatabaseTools(server, version="4.2.1")
    spec = TransferSpec.from_options("mongodb://localhost/shop", str(tmp_path))

    assert build_transfer(tmp_path, server, spec, "export", tools=tools).run() == 2
    assert tools.tool_calls("mongodump") == []


def test_unknown_direction_is_rejected(server):
    with pytest.raises(ValueError):
        DatabaseTransfer(TransferSpec.from_options(None, None), direction="sideways")


def test_launch_runs_local_script(tmp_path):
    fake_subprocess = FakeSubprocess(lines=["> app@1.0.0 local", "server listening on 9000"])
    runner = ScriptRunner("launch", cwd=str(tmp_path), subprocess_module=fake_subprocess)

    assert runner.run() == 0
    command, kwargs = fake_subprocess.calls[0]
    assert command == ["npm", "run", "local"]
    assert kwargs["cwd"] == str(tmp_path)


def test_build_failure_maps_to_external_exit_code(tmp_path):
    fake_subprocess = FakeSubprocess(lines=["ERROR in ./src/index.js"], returncode=1)
    runner = ScriptRunner("build", cwd=str(tmp_path), subprocess_module=fake_subprocess)

    assert runner.run() == 2
    assert fake_subprocess.calls[0][0] == ["npm", "run", "build"]

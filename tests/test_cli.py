from click.testing import CliRunner

import appforge.cli as cli_module
from appforge.models import DropPolicy


class Recorder:
    """Replaces an orchestrator class and remembers how it was built."""

    def __init__(self, exit_code=0):
        self.exit_code = exit_code
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return self

    def run(self):
        return self.exit_code


def test_backup_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / "appforge.yml"
    config_file.write_text(
        "backup:\n"
        "  db: mongodb://localhost:27017/shop\n"
        "  path: /var/backups\n"
        "  type: json\n"
        "  collections: orders, users\n",
        encoding="utf-8",
    )
    recorder = Recorder()
    monkeypatch.setattr(cli_module, "DatabaseTransfer", recorder)

    result = CliRunner().invoke(
        cli_module.main,
        ["--config", str(config_file), "backup", "--path", "/tmp/out", "--zip", "nightly"],
    )

    assert result.exit_code == 0, result.output
    (spec,), kwargs = recorder.calls[0]
    assert kwargs == {"direction": "export"}
    assert spec.connection_uri == "mongodb://localhost:27017/shop"
    assert spec.root_path == "/tmp/out"
    assert spec.archive_name == "nightly"
    assert spec.data_format == "json"
    assert spec.collections == frozenset({"orders", "users"})


def test_cli_uses_default_config_file_when_present(tmp_path, monkeypatch):
    (tmp_path / ".appforge.yml").write_text(
        "restore:\n  db: mongodb://localhost/shop\n  path: ./dump\n  clear: true\n",
        encoding="utf-8",
    )
    recorder = Recorder()
    monkeypatch.setattr(cli_module, "DatabaseTransfer", recorder)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["restore", "--collections", "a b", "--yes"])

    assert result.exit_code == 0, result.output
    (spec,), kwargs = recorder.calls[0]
    assert kwargs == {"direction": "import", "assume_yes": True}
    assert spec.drop_policy == DropPolicy.DROP_FILTERED_ONLY
    assert spec.collections == frozenset({"a", "b"})


def test_invalid_config_exits_with_validation_code(tmp_path):
    config_file = tmp_path / "broken.yml"
    config_file.write_text("colour: blue\n", encoding="utf-8")

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file), "launch"])

    assert result.exit_code == 1
    assert "Unknown configuration keys: colour" in result.output


def test_orchestrator_exit_code_is_propagated(monkeypatch):
    monkeypatch.setattr(cli_module, "Migrator", Recorder(exit_code=2))

    result = CliRunner().invoke(
        cli_module.main,
        ["migrate", "--from", "mongodb://a/x", "--to", "mongodb://b/y"],
    )

    assert result.exit_code == 2


def test_migrate_builds_params(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(cli_module, "Migrator", recorder)

    result = CliRunner().invoke(
        cli_module.main,
        [
            "migrate",
            "--from",
            "mongodb://prod/shop",
            "--to",
            "mongodb://staging/shop",
            "--type",
            "json",
            "--clear",
            "-y",
        ],
    )

    assert result.exit_code == 0, result.output
    (params,), kwargs = recorder.calls[0]
    assert params.source_uri == "mongodb://prod/shop"
    assert params.target_uri == "mongodb://staging/shop"
    assert params.data_format == "json"
    assert params.clear is True
    assert kwargs == {"assume_yes": True}


def test_install_reads_defaults_from_config(tmp_path, monkeypatch):
    config_file = tmp_path / "appforge.yml"
    config_file.write_text(
        "install:\n  username: admin\n  port: 9100\n  skip_dependencies: true\n  download_timeout: 15\n",
        encoding="utf-8",
    )
    recorder = Recorder()
    monkeypatch.setattr(cli_module, "Installer", recorder)

    result = CliRunner().invoke(
        cli_module.main,
        ["--config", str(config_file), "install", "--port", "9200", "--db", "mongodb://h/app"],
    )

    assert result.exit_code == 0, result.output
    (params,), kwargs = recorder.calls[0]
    assert params.username == "admin"
    assert params.port == 9200
    assert params.database_uri == "mongodb://h/app"
    assert params.password is None
    assert params.skip_dependencies is True
    assert kwargs == {"download_timeout": 15.0}


def test_launch_and_build_map_to_script_runner(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(cli_module, "ScriptRunner", recorder)

    assert CliRunner().invoke(cli_module.main, ["launch"]).exit_code == 0
    assert CliRunner().invoke(cli_module.main, ["build", "--timeout", "30"]).exit_code == 0

    assert recorder.calls[0] == (("launch",), {"timeout": None})
    assert recorder.calls[1] == (("build",), {"timeout": 30.0})


def test_create_scaffolds_into_current_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["create", "widget", "--name", "Sales Chart"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "src" / "app" / "widgets" / "sales-chart" / "index.js").exists()


def test_create_rejects_unknown_type():
    result = CliRunner().invoke(cli_module.main, ["create", "gadget", "--name", "x"])

    assert result.exit_code == 2
    assert "gadget" in result.output

import logging
import os

import click
from rich.logging import RichHandler

from . import __version__
from .constants import CONFIG_FILE_NAME, DATA_FORMATS, DOWNLOAD_TIMEOUT
from .core import DatabaseTransfer, ScriptRunner, console
from .errors import AppForgeError
from .install import Installer
from .migrate import Migrator
from .models import InstallParams, MigrationParams, TransferSpec
from .services.config_loader import ConfigLoader
from .services.scaffold import MODULE_TYPES, ScaffoldService


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _section(ctx: click.Context, name: str):
    return ConfigLoader.section(ctx.obj.get("config", {}), name)


@click.group()
@click.version_option(__version__, prog_name="appforge")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {CONFIG_FILE_NAME} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, verbose, log_file):
    """Scaffold modules, install applications and move their databases."""
    logger = logging.getLogger("appforge")

    try:
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), CONFIG_FILE_NAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = ConfigLoader().load(resolved_config)
    except AppForgeError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    ctx.obj = {"config": config_values}


@main.command()
@click.argument("module_type", metavar="TYPE", type=click.Choice(MODULE_TYPES, case_sensitive=False))
@click.option("--name", prompt="Module name", help="Name of the new module.")
@click.option("--path", required=False, help="Parent directory for the module.")
@click.option("--core", is_flag=True, default=None, help="Create the module in the core tree.")
@click.option("--overwrite", is_flag=True, default=False, help="Replace files that already exist.")
@click.pass_context
def create(ctx, module_type, name, path, core, overwrite):
    """Create a helper, plugin, widget or theme from a template."""
    config = _section(ctx, "create")
    service = ScaffoldService(logger=logging.getLogger("appforge"), console=console)
    try:
        service.create(
            module_type,
            name,
            path=_resolve_option(path, config, "path"),
            core=bool(_resolve_option(core, config, "core", default=False)),
            overwrite=overwrite,
        )
    except AppForgeError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise SystemExit(exc.exit_code)


def _transfer_options(func):
    func = click.option("--collections", help="Comma or space separated collection names.")(func)
    func = click.option(
        "--type",
        "data_format",
        type=click.Choice(DATA_FORMATS),
        default=None,
        help="Export format (default: bson).",
    )(func)
    func = click.option("--zip", "archive_name", help="Use a single zip archive with this name.")(func)
    func = click.option("--path", help="Directory holding the export.")(func)
    func = click.option("--db", help="MongoDB connection string including the database name.")(func)
    return func


def _transfer_spec(ctx, section, db, path, archive_name, data_format, collections, clear=None):
    config = _section(ctx, section)
    return TransferSpec.from_options(
        connection_uri=_resolve_option(db, config, "db"),
        root_path=_resolve_option(path, config, "path"),
        collections=_resolve_option(collections, config, "collections"),
        clear=bool(_resolve_option(clear, config, "clear", default=False)),
        archive_name=_resolve_option(archive_name, config, "zip"),
        data_format=_resolve_option(data_format, config, "type", default="bson"),
    )


@main.command()
@_transfer_options
@click.pass_context
def backup(ctx, db, path, archive_name, data_format, collections):
    """Export a database to a directory or zip archive."""
    spec = _transfer_spec(ctx, "backup", db, path, archive_name, data_format, collections)
    raise SystemExit(DatabaseTransfer(spec, direction="export").run())


@main.command()
@_transfer_options
@click.option("--clear", is_flag=True, default=None, help="Drop target data before restoring.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def restore(ctx, db, path, archive_name, data_format, collections, clear, assume_yes):
    """Import a directory or zip archive into a database."""
    spec = _transfer_spec(ctx, "restore", db, path, archive_name, data_format, collections, clear)
    raise SystemExit(DatabaseTransfer(spec, direction="import", assume_yes=assume_yes).run())


@main.command()
@click.option("--from", "source", help="Source connection string.")
@click.option("--to", "target", help="Target connection string.")
@click.option("--zip", "archive_name", help="Stage the data as a single zip archive.")
@click.option("--type", "data_format", type=click.Choice(DATA_FORMATS), default=None)
@click.option("--collections", help="Comma or space separated collection names.")
@click.option("--clear", is_flag=True, default=None, help="Drop target data before restoring.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def migrate(ctx, source, target, archive_name, data_format, collections, clear, assume_yes):
    """Copy a database from one environment to another."""
    config = _section(ctx, "migrate")
    params = MigrationParams(
        source_uri=_resolve_option(source, config, "from"),
        target_uri=_resolve_option(target, config, "to"),
        collections=_resolve_option(collections, config, "collections"),
        clear=bool(_resolve_option(clear, config, "clear", default=False)),
        archive_name=_resolve_option(archive_name, config, "zip"),
        data_format=_resolve_option(data_format, config, "type", default="bson"),
        temp_root=config.get("temp_root"),
    )
    raise SystemExit(Migrator(params, assume_yes=assume_yes).run())


@main.command()
@click.option("--username", help="Admin username.")
@click.option("--password", help="Admin password. Prompted (hidden) when omitted.")
@click.option("--db", help="MongoDB connection string including the database name.")
@click.option("--port", type=int, default=None, help="Local server port.")
@click.option("--overwrite", is_flag=True, default=None, help="Install into a non-empty directory.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.option("--archive-url", help="Application archive to download.")
@click.option("--archive-sha256", help="Expected SHA-256 checksum of the archive.")
@click.option(
    "--allow-insecure-http",
    is_flag=True,
    default=None,
    help="Allow an HTTP archive URL (insecure). By default only HTTPS URLs are accepted.",
)
@click.option("--skip-dependencies", is_flag=True, default=None, help="Do not run npm install.")
@click.pass_context
def install(
    ctx,
    username,
    password,
    db,
    port,
    overwrite,
    assume_yes,
    archive_url,
    archive_sha256,
    allow_insecure_http,
    skip_dependencies,
):
    """Install a new application into the current directory."""
    config = _section(ctx, "install")
    params = InstallParams(
        username=_resolve_option(username, config, "username"),
        password=password,
        database_uri=_resolve_option(db, config, "db"),
        port=_resolve_option(port, config, "port"),
        overwrite=bool(_resolve_option(overwrite, config, "overwrite", default=False)),
        assume_yes=assume_yes,
        archive_url=_resolve_option(archive_url, config, "archive_url"),
        archive_sha256=_resolve_option(archive_sha256, config, "archive_sha256"),
        allow_insecure_http=bool(
            _resolve_option(allow_insecure_http, config, "allow_insecure_http", default=False)
        ),
        temp_root=config.get("temp_root"),
        skip_dependencies=bool(
            _resolve_option(skip_dependencies, config, "skip_dependencies", default=False)
        ),
    )
    download_timeout = float(config.get("download_timeout", DOWNLOAD_TIMEOUT))
    raise SystemExit(Installer(params, download_timeout=download_timeout).run())


@main.command()
@click.option("--timeout", type=float, default=None, help="Stop after this many seconds.")
@click.pass_context
def launch(ctx, timeout):
    """Run the application locally (npm run local)."""
    timeout = _resolve_option(timeout, _section(ctx, "launch"), "timeout")
    raise SystemExit(ScriptRunner("launch", timeout=timeout).run())


@main.command()
@click.option("--timeout", type=float, default=None, help="Stop after this many seconds.")
@click.pass_context
def build(ctx, timeout):
    """Build the application (npm run build)."""
    timeout = _resolve_option(timeout, _section(ctx, "build"), "timeout")
    raise SystemExit(ScriptRunner("build", timeout=timeout).run())


if __name__ == "__main__":
    main()

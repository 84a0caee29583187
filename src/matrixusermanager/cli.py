import logging
import os

import click
from rich.logging import RichHandler

from .constants import CONFIG_FILE_NAME, LOG_FILE_NAME
from .core import ManagerError, UserManager
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


console_handler = RichHandler(rich_tracebacks=True, show_level=False, show_path=False)
# INFO goes to the log file only; the console is busy with menus
console_handler.setLevel(logging.WARNING)

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[console_handler],
)


@click.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {CONFIG_FILE_NAME} if present.",
)
@click.option(
    "--server-container",
    required=False,
    help="Name of the Synapse container. Skips auto-detection.",
)
@click.option(
    "--database-container",
    required=False,
    help="Name of the PostgreSQL container. Skips auto-detection.",
)
@click.option(
    "--homeserver-config",
    required=False,
    help="Path of homeserver.yaml inside the Synapse container. Skips the search.",
)
@click.option(
    "--backup-dir",
    required=False,
    type=click.Path(file_okay=False),
    help="Directory for database backups (default: current directory).",
)
@click.option(
    "--log-file",
    type=click.Path(),
    help=f"Path to log file (default: {LOG_FILE_NAME} in the current directory).",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
def main(
    config,
    server_container,
    database_container,
    homeserver_config,
    backup_dir,
    log_file,
    verbose,
):
    """Manage user accounts of a Synapse homeserver running in Docker."""
    logger = logging.getLogger("matrixusermanager")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), CONFIG_FILE_NAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except ManagerError as exc:
        raise click.ClickException(str(exc)) from exc

    server_container = _resolve_option(server_container, config_values, "server_container")
    database_container = _resolve_option(database_container, config_values, "database_container")
    homeserver_config = _resolve_option(homeserver_config, config_values, "homeserver_config")
    backup_dir = _resolve_option(backup_dir, config_values, "backup_dir", default=os.getcwd())
    log_file = _resolve_option(
        log_file,
        config_values,
        "log_file",
        default=os.path.join(os.getcwd(), LOG_FILE_NAME),
    )
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        console_handler.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    manager = UserManager(
        server_container=server_container,
        database_container=database_container,
        homeserver_config=homeserver_config,
        backup_dir=backup_dir,
        log_file=log_file,
    )

    raise SystemExit(manager.run())


if __name__ == "__main__":
    main()

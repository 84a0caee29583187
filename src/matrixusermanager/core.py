import logging
import os
import subprocess
import tempfile
from typing import List, Optional

import click
from rich.console import Console

from .errors import ManagerError
from .models import MENU_LABELS, Environment, MenuAction
from .services.accounts import AccountService
from .services.actions import ActionDispatcher
from .services.backup import BackupService
from .services.command_runner import CommandRunner
from .services.container_files import ContainerFileService
from .services.dialect import EnvironmentResolver
from .services.discovery import ContainerDiscoveryService
from .services.homeserver_config import HomeserverConfigFetcher
from .services.query_executor import QueryExecutor
from .ui import Prompter

console = Console()
logger = logging.getLogger("matrixusermanager")


class UserManager:
    REQUIRED_COMMANDS = ["docker"]

    def __init__(
        self,
        server_container: Optional[str] = None,
        database_container: Optional[str] = None,
        homeserver_config: Optional[str] = None,
        backup_dir: Optional[str] = None,
        log_file: Optional[str] = None,
        prompter: Optional[Prompter] = None,
    ):
        self.server_container = server_container
        self.database_container = database_container
        self.homeserver_config = homeserver_config
        self.backup_dir = backup_dir or os.getcwd()
        self.log_file = log_file
        self.prompter = prompter or Prompter(console)
        self.environment: Optional[Environment] = None

        self.command_runner = CommandRunner(logger=logger)
        self.discovery_service = ContainerDiscoveryService(logger=logger, run_cmd=self._run_cmd)
        self.file_service = ContainerFileService(logger=logger, run_cmd=self._run_cmd)
        self.config_fetcher = HomeserverConfigFetcher(logger=logger, files=self.file_service)
        self.query_executor = QueryExecutor(logger=logger, run_cmd=self._run_cmd)
        self.environment_resolver = EnvironmentResolver(
            logger=logger,
            files=self.file_service,
            executor=self.query_executor,
        )
        self.account_service = AccountService(
            logger=logger,
            run_cmd=self._run_cmd,
            executor=self.query_executor,
        )

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def validate_requirements(self):
        for command in self.REQUIRED_COMMANDS:
            self._run_cmd([command, "--version"], capture_output=True)

    def detect_environment(self) -> Environment:
        discovery = self.discovery_service.discover(
            self.prompter,
            server_override=self.server_container,
            database_override=self.database_container,
        )
        content, config_path = self.config_fetcher.fetch(
            discovery.server_container,
            self.prompter,
            path_override=self.homeserver_config,
        )
        return self.environment_resolver.resolve(discovery, content, config_path, self.prompter)

    def build_dispatcher(self, work_dir: str) -> ActionDispatcher:
        backup_service = BackupService(
            logger=logger,
            run_cmd=self._run_cmd,
            executor=self.query_executor,
            backup_dir=self.backup_dir,
            work_dir=work_dir,
            subprocess_module=subprocess,
        )
        return ActionDispatcher(
            logger=logger,
            executor=self.query_executor,
            accounts=self.account_service,
            backups=backup_service,
        )

    def show_welcome(self, environment: Environment):
        lines = ["Configuration detected:"]
        lines.extend(f"- {line}" for line in environment.summary_lines())
        if self.log_file:
            lines.append(f"- Log file: {self.log_file}")
        self.prompter.show("Configuration Complete", "\n".join(lines))

    def menu_loop(self, environment: Environment, dispatcher: ActionDispatcher):
        options = [(action.value, MENU_LABELS[action]) for action in MenuAction]
        while True:
            choice = self.prompter.choose("Matrix User Manager", "Select an action:", options)
            action = MenuAction(choice)
            if action is MenuAction.EXIT:
                return

            try:
                result = dispatcher.dispatch(action, environment, self.prompter)
            except (ManagerError, OSError) as exc:
                logger.warning("Action %s failed: %s", action.name, exc)
                self.prompter.show("Error", str(exc), ok=False)
                continue

            self.prompter.show(result.title, result.body, ok=result.ok)

    def run(self) -> int:
        exit_code = 1

        with tempfile.TemporaryDirectory(prefix="matrixusermanager.") as work_dir:
            try:
                logger.info("Starting Matrix User Manager...")
                self.validate_requirements()

                self.environment = self.detect_environment()
                dispatcher = self.build_dispatcher(work_dir)

                self.show_welcome(self.environment)
                logger.info("=== Matrix User Manager Started ===")
                logger.info(
                    "Synapse: %s, DB: %s, Domain: %s",
                    self.environment.server_container,
                    self.environment.dialect.value,
                    self.environment.domain,
                )

                self.menu_loop(self.environment, dispatcher)
                logger.info("=== Matrix User Manager Ended ===")
                exit_code = 0
                return exit_code

            except (KeyboardInterrupt, click.exceptions.Abort):
                # click turns Ctrl-C and EOF at a prompt into Abort
                console.print("[bold red]Operation cancelled by user.[/bold red]")
                logger.info("Operation cancelled by user")
                exit_code = 1
                return exit_code
            except ManagerError as exc:
                console.print(f"[bold red]Error:[/bold red] {exc}")
                logger.error(str(exc))
                exit_code = 1
                return exit_code
            except Exception as exc:
                console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
                logger.exception("Unexpected error")
                exit_code = 1
                return exit_code

"""Container discovery for matrix-user-manager."""

from typing import Callable, List, Optional, Sequence

from matrixusermanager.constants import DATABASE_KEYWORDS, MAX_CANDIDATES, SERVER_KEYWORDS
from matrixusermanager.errors import NotFoundError
from matrixusermanager.errors_catalog import actionable_error
from matrixusermanager.models import Container, DiscoveryResult

SKIP_CHOICES = ("0", "skip")


def parse_container_listing(output: str) -> List[Container]:
    containers = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        name, _, image = line.partition(" ")
        containers.append(Container(name=name, image=image.strip()))
    return containers


def filter_candidates(
    containers: Sequence[Container],
    keywords: Sequence[str],
    exclude: Sequence[str] = (),
    limit: int = MAX_CANDIDATES,
) -> List[Container]:
    """Keep containers whose name or image mentions a keyword, in listing order."""
    matches = []
    for container in containers:
        haystack = f"{container.name} {container.image}".lower()
        if any(keyword in haystack for keyword in exclude):
            continue
        if any(keyword in haystack for keyword in keywords):
            matches.append(container)
    return matches[:limit]


def resolve_choice(answer: str, candidates: Sequence[Container]) -> Optional[Container]:
    """Map a 1-based index or an exact container name to a candidate."""
    answer = answer.strip()
    if answer.isdigit():
        index = int(answer)
        if 1 <= index <= len(candidates):
            return candidates[index - 1]
        return None
    for candidate in candidates:
        if candidate.name == answer:
            return candidate
    return None


class ContainerDiscoveryService:
    """Finds the Synapse and PostgreSQL containers among running containers."""

    def __init__(self, logger, run_cmd: Callable):
        self.logger = logger
        self.run_cmd = run_cmd

    def list_running(self) -> List[Container]:
        result = self.run_cmd(
            ["docker", "ps", "--format", "{{.Names}} {{.Image}}"],
            check=True,
            capture_output=True,
        )
        return parse_container_listing(result.stdout or "")

    def is_running(self, name: str) -> bool:
        return any(container.name == name for container in self.list_running())

    def discover(
        self,
        prompter,
        server_override: Optional[str] = None,
        database_override: Optional[str] = None,
    ) -> DiscoveryResult:
        self.logger.info("Starting container detection...")
        containers = self.list_running()

        if server_override:
            server = self._require_running(server_override, containers)
        else:
            server = self._select_server(containers, prompter)

        skipped = False
        if database_override:
            database: Optional[str] = self._require_running(database_override, containers)
        else:
            database, skipped = self._select_database(containers, prompter)

        self.logger.info(
            "Final containers - Synapse: %s, Postgres: %s", server, database or "none"
        )
        return DiscoveryResult(
            server_container=server,
            database_container=database,
            database_skipped=skipped,
        )

    def _require_running(self, name: str, containers: Sequence[Container]) -> str:
        if not any(container.name == name for container in containers):
            raise NotFoundError(actionable_error("container_not_running", name=name))
        self.logger.info("Using configured container: %s", name)
        return name

    def _select_server(self, containers: Sequence[Container], prompter) -> str:
        # "synapse-db" running postgres is a database, not a homeserver
        candidates = filter_candidates(containers, SERVER_KEYWORDS, exclude=DATABASE_KEYWORDS)
        if not candidates:
            candidates = filter_candidates(containers, SERVER_KEYWORDS)

        if len(candidates) == 1:
            self.logger.info("Auto-detected single synapse container: %s", candidates[0].name)
            return candidates[0].name

        if candidates:
            choice = self._pick(candidates, prompter, "Multiple Matrix/Synapse containers found:")
            self.logger.info("User selected synapse container: %s", choice)
            return choice

        if containers:
            prompter.notice("Available containers:")
            for container in containers:
                prompter.notice(f"  {container.describe()}", style="white")

        while True:
            name = prompter.ask(
                "Synapse Container",
                "Cannot auto-detect Synapse container. Enter container name",
            )
            if not name:
                raise NotFoundError(actionable_error("server_container_required"))
            if self.is_running(name):
                self.logger.info("User manually entered synapse container: %s", name)
                return name
            prompter.notice(f"Container '{name}' not found or not running. Try again.", style="red")

    def _select_database(self, containers: Sequence[Container], prompter):
        candidates = filter_candidates(containers, DATABASE_KEYWORDS)

        if not candidates:
            return None, False

        if len(candidates) == 1:
            self.logger.info("Auto-detected single postgres container: %s", candidates[0].name)
            return candidates[0].name, False

        choice = self._pick(
            candidates,
            prompter,
            "Multiple Postgres containers found (0 or 'skip' to use SQLite instead):",
            allow_skip=True,
        )
        if choice is None:
            self.logger.info("User skipped postgres container selection")
            return None, True
        self.logger.info("User selected postgres container: %s", choice)
        return choice, False

    def _pick(
        self,
        candidates: Sequence[Container],
        prompter,
        heading: str,
        allow_skip: bool = False,
    ) -> Optional[str]:
        prompter.notice(heading)
        if allow_skip:
            prompter.notice("0) Skip - Use SQLite instead", style="white")
        for index, candidate in enumerate(candidates, start=1):
            prompter.notice(f"{index}) {candidate.describe()}", style="white")

        lowest = 0 if allow_skip else 1
        while True:
            answer = prompter.ask(
                "Select Container",
                f"Choose container (enter number {lowest}-{len(candidates)} or container name)",
            )
            if allow_skip and answer.strip().lower() in SKIP_CHOICES:
                return None
            selected = resolve_choice(answer, candidates)
            if selected is not None:
                return selected.name
            prompter.notice(f"Invalid choice '{answer}'. Try again.", style="red")

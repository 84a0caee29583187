"""File lookups inside a running container."""

from typing import Callable, List, Optional, Sequence

from matrixusermanager.constants import SEARCH_RESULT_LIMIT


class ContainerFileService:
    """Checks, reads and searches files through ``docker exec``."""

    def __init__(self, logger, run_cmd: Callable):
        self.logger = logger
        self.run_cmd = run_cmd

    def exists(self, container: str, path: str) -> bool:
        result = self.run_cmd(
            ["docker", "exec", container, "test", "-f", path],
            check=False,
            capture_output=True,
        )
        return result.returncode == 0

    def first_existing(self, container: str, paths: Sequence[str]) -> Optional[str]:
        for path in paths:
            if path and self.exists(container, path):
                return path
        return None

    def read(self, container: str, path: str) -> str:
        result = self.run_cmd(
            ["docker", "exec", container, "cat", path],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return ""
        return result.stdout or ""

    def find(
        self,
        container: str,
        name_pattern: str,
        exclude_prefix: str = "/proc/",
        limit: int = SEARCH_RESULT_LIMIT,
    ) -> List[str]:
        # find exits non-zero on unreadable directories; its partial output still counts
        result = self.run_cmd(
            ["docker", "exec", container, "find", "/", "-name", name_pattern, "-type", "f"],
            check=False,
            capture_output=True,
        )
        hits = []
        for line in (result.stdout or "").splitlines():
            line = line.strip()
            if not line or line.startswith(exclude_prefix):
                continue
            hits.append(line)
            if len(hits) >= limit:
                break
        self.logger.debug("Search for %s in %s found %s file(s)", name_pattern, container, len(hits))
        return hits

    def locate(
        self,
        container: str,
        paths: Sequence[str],
        name_pattern: str,
        default: str,
        prompter,
        title: str,
        prompt: str,
        found_heading: str,
    ) -> str:
        """Known paths first, then a bounded search the operator can override."""
        found = self.first_existing(container, paths)
        if found:
            return found

        hits = self.find(container, name_pattern)
        if hits:
            prompter.notice(found_heading)
            for hit in hits:
                prompter.notice(f"  {hit}", style="white")
        suggestion = hits[0] if hits else default
        return prompter.ask(title, prompt, default=suggestion) or suggestion

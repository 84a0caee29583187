"""Terminal prompts and result panels."""

from typing import Sequence, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.text import Text


class Prompter:
    """Interactive boundary used by discovery, detection and the actions.

    Everything the core needs from the operator goes through this class, so
    tests can replace it with a scripted double.
    """

    def __init__(self, console: Console):
        self.console = console

    def ask(self, title: str, prompt: str, default: str = "") -> str:
        self.console.print(f"[cyan]{title}[/cyan]")
        value = click.prompt(prompt, default=default, show_default=bool(default))
        return value.strip()

    def ask_password(self, title: str, prompt: str) -> str:
        self.console.print(f"[cyan]{title}[/cyan]")
        return click.prompt(prompt, default="", hide_input=True, show_default=False)

    def confirm(self, prompt: str) -> bool:
        return click.confirm(prompt, default=False)

    def choose(self, title: str, prompt: str, options: Sequence[Tuple[str, str]]) -> str:
        """Show keyed options and return the chosen key, asking again on bad input."""
        keys = [key for key, _ in options]
        while True:
            self.console.print()
            self.console.print(f"[bold cyan]=== {title} ===[/bold cyan]")
            self.console.print(prompt)
            for key, label in options:
                self.console.print(f"{key}) {label}")
            choice = click.prompt("Choose", default="", show_default=False).strip()
            if not choice:
                self.console.print("[yellow]Please enter a choice.[/yellow]")
                continue
            if choice in keys:
                return choice
            self.console.print("[red]Invalid choice. Please try again.[/red]")

    def notice(self, text: str, style: str = "cyan"):
        self.console.print(f"[{style}]{text}[/{style}]")

    def show(self, title: str, body: str, ok: bool = True):
        style = "green" if ok else "red"
        self.console.print(Panel(Text(body), title=title, border_style=style, expand=False))

"""Notifier that writes messages to the terminal, for the CLI."""

import typer

from github_volunteer_manager.notify.abc import NotifierBase


class ConsoleNotifier(NotifierBase):
    """Echoes messages to standard output."""

    async def post_message(self, channel: str, text: str) -> None:
        typer.echo(f"[{channel}] {text}")

    async def post_ephemeral(self, user: str, channel: str, text: str) -> None:
        typer.echo(f"[{channel}] (only visible to {user}) {text}")

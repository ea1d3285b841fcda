"""Installing slash commands so the registered set matches the wanted definition."""

from __future__ import annotations

from typing import Any, Mapping


class SlashInstallError(RuntimeError):
    """Raised when the command list cannot be read or a command cannot be stored."""


def _options(command: Mapping[str, Any]) -> list[Any]:
    return list(command.get("options") or [])


def install_slash_command(session: Any, guild_id: str, app: Mapping[str, Any]) -> None:
    """Create or update the command ``app`` unless an identical one is already registered.

    An empty ``guild_id`` installs the command globally.
    """
    application_id = session.bot_user_id
    try:
        commands = session.application_commands(application_id, guild_id)
    except Exception as exc:
        raise SlashInstallError(f"error in ApplicationCommands get: {exc}") from exc

    existing: Mapping[str, Any] | None = None
    same = False
    for command in commands or []:
        if command.get("name") == app["name"]:
            existing = command
            same = _options(command) == _options(app)

    if same:
        return

    if existing is not None:
        try:
            session.application_command_edit(application_id, guild_id, existing["id"], app)
        except Exception as exc:
            raise SlashInstallError(
                f"error in ApplicationCommandEdit {existing.get('name')}: {exc}"
            ) from exc
    else:
        try:
            session.application_command_create(application_id, guild_id, app)
        except Exception as exc:
            raise SlashInstallError(f"error in ApplicationCommandCreate: {exc}") from exc
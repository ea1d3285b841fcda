"""Looking up which voice channel a user is in."""

from __future__ import annotations

from typing import Any

ITF_DISCORD = "687565213943332875"


class NotInVoiceError(LookupError):
    """Raised when the user is in no voice channel of the guild."""

    def __init__(self) -> None:
        super().__init__("user not in voice")


def find_voice_user(session: Any, guild_id: str, user_id: str) -> str:
    """Return the ID of the voice channel ``user_id`` is connected to in the guild."""
    guild = session.guild(guild_id or ITF_DISCORD)
    for state in guild.get("voice_states") or []:
        if state.get("user_id") == user_id:
            return state.get("channel_id", "")
    raise NotInVoiceError()
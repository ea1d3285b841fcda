"""Fixed lists of privileged users."""

from __future__ import annotations

_ADMINS = frozenset(
    {
        "687715371255463972",
        "687912036595663051",
        "633665080994562048",
        "688028811677138986",
        "688028986626146304",
        "371304151851728896",
        "177531421152247809",
    }
)

_ITF_GAME_ADMINS = frozenset(
    {
        "161504618017325057",
        "434499632765075456",
        "249632139228741632",
        "252083102992695296",
        "307916386238201856",
        "687715371255463972",
        "177531421152247809",
    }
)

_BOT_DEVS = frozenset(
    {
        "161504618017325057",
        "687715371255463972",
        "687912036595663051",
        "177531421152247809",
        "252083102992695296",
    }
)


def is_admin(user_id: str) -> bool:
    """Whether the user has admin privileges."""
    return user_id in _ADMINS


def is_itf_game_admin(user_id: str) -> bool:
    """Whether the user administers the game community."""
    return user_id in _ITF_GAME_ADMINS


def is_bot_dev(user_id: str) -> bool:
    """Whether the user is a bot developer."""
    return user_id in _BOT_DEVS
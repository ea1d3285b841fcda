"""The /pronostiek command, showing the prediction game rankings."""

from __future__ import annotations

import json
import logging
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from thomasbot.embed import Embed
from thomasbot.slash import install_slash_command

log = logging.getLogger(__name__)

EPHEMERAL = 64
RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE = 4
OPTION_STRING = 3

ITF_DISCORD = "687565213943332875"
API_URL = "https://prono.inmijneendje.be/api/rank"
SITE_URL = "https://prono.inmijneendje.be/"
FIELDS_PER_RANK = 3
MAX_FIELDS_PER_EMBED = 15

_MEDALS = ("🥇", "🥈", "🥉")


@dataclass
class Rank:
    name: str = ""
    totalscore: str = ""
    all_correct: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rank:
        return cls(
            name=str(data.get("name") or ""),
            totalscore=str(data.get("totalscore") or ""),
            all_correct=int(data.get("allCorrect") or 0),
        )


def get_medal(index: int) -> str:
    """A medal for the top three places, the 1-based place number otherwise."""
    return _MEDALS[index] if 0 <= index < len(_MEDALS) else str(index + 1)


def build_embeds(rank: str, ranks: Iterable[Rank]) -> list[dict[str, Any]]:
    """Lay the ranking out in embeds of at most five rows of three inline fields."""
    title = f"Rank {rank}"
    embeds: list[dict[str, Any]] = []
    current = Embed().set_title(title)
    for index, entry in enumerate(ranks):
        if len(current.fields) + FIELDS_PER_RANK > MAX_FIELDS_PER_EMBED:
            embeds.append(current.inline_all_fields().to_dict())
            current = Embed().set_title(title)
        current.add_field("Name", f"{get_medal(index)} {entry.name}")
        current.add_field("Score", entry.totalscore)
        current.add_field("Correct", str(entry.all_correct))
    embeds.append(current.inline_all_fields().to_dict())
    return embeds


def _http_get(url: str) -> bytes:
    with urllib.request.urlopen(url, timeout=30) as response:
        return response.read()


def fetch_ranks(rank: str, fetch: Callable[[str], bytes | str] | None = None) -> list[Rank]:
    """Download and decode the ranking named ``rank``."""
    body = (fetch or _http_get)(API_URL + rank)
    data = json.loads(body)
    if not isinstance(data, list):
        raise ValueError("ranking must be a JSON array")
    return [Rank.from_dict(item) for item in data]


class PronostiekCommand:
    """Handler for the /pronostiek command."""

    def __init__(self, fetch: Callable[[str], bytes | str] | None = None) -> None:
        self._fetch = fetch

    def slash_command(self, session: Any, interaction: Mapping[str, Any]) -> None:
        options = (interaction.get("data") or {}).get("options") or []
        value = options[0].get("value") if options else None
        rank = value if isinstance(value, str) else ""

        try:
            ranks = fetch_ranks(rank, self._fetch)
        except Exception as exc:
            session.interaction_respond(
                interaction,
                {
                    "type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE,
                    "data": {"content": f"An error occured: {json.dumps(str(exc))}", "flags": EPHEMERAL},
                },
            )
            return

        try:
            session.interaction_respond(
                interaction,
                {
                    "type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE,
                    "data": {
                        "content": f"Ook een gokje wagen? {SITE_URL}",
                        "embeds": build_embeds(rank, ranks),
                    },
                },
            )
        except Exception as exc:
            log.warning("%s", exc)

    def install_slash_commands(self, session: Any) -> None:
        install_slash_command(
            session,
            ITF_DISCORD,
            {
                "name": "pronostiek",
                "description": "Post the Current EK Pronostiek",
                "options": [
                    {
                        "type": OPTION_STRING,
                        "name": "rank",
                        "description": "name of rank",
                        "required": True,
                        "choices": [
                            {"name": "studenten", "value": "Studenten"},
                            {"name": "docenten", "value": "Docenten"},
                        ],
                    }
                ],
            },
        )
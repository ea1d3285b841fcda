"""The /menu command, showing the cafeteria menu of a campus."""

from __future__ import annotations

import json
import logging
import re
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from thomasbot.embed import Embed
from thomasbot.slash import install_slash_command

log = logging.getLogger(__name__)

API_URL = "https://tmmenumanagement.azurewebsites.net/api/Menu/"
RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE = 4
OPTION_STRING = 3
CAMPUSES = ("Geel", "Lier")

_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"\.(\d+)")


def _parse_time(value: Any) -> datetime:
    if value is None:
        return _ZERO_TIME
    if not isinstance(value, str):
        raise ValueError("time must be a string")
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


@dataclass
class MenuItem:
    short_description_nl: str = ""
    short_description_en: str = ""
    category_id: str = ""
    category_nl: str = ""
    category_en: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MenuItem:
        category = data.get("Category") or {}
        return cls(
            short_description_nl=_text(data, "ShortDescriptionNL"),
            short_description_en=_text(data, "ShortDescriptionEN"),
            category_id=_text(category, "ID"),
            category_nl=_text(category, "NameNL"),
            category_en=_text(category, "NameEN"),
        )


@dataclass
class MenuDay:
    curdate: datetime = _ZERO_TIME
    rowkey: str = ""
    kitchen_description: str = ""
    kitchen_campus: str = ""
    items: list[MenuItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MenuDay:
        kitchen = data.get("kitchen") or {}
        return cls(
            curdate=_parse_time(data.get("curdate")),
            rowkey=_text(data, "rowkey"),
            kitchen_description=_text(kitchen, "Description"),
            kitchen_campus=_text(kitchen, "Campus"),
            items=[MenuItem.from_dict(item) for item in data.get("items") or []],
        )


def parse_menu(content: bytes | str) -> list[MenuDay]:
    """Decode the API answer, a JSON string that itself holds the JSON menu list.

    Anything that does not decode gives an empty menu.
    """
    try:
        inner = json.loads(content)
        if not isinstance(inner, str):
            return []
        data = json.loads(inner)
        if not isinstance(data, list):
            return []
        return [MenuDay.from_dict(day) for day in data]
    except (ValueError, TypeError, AttributeError):
        return []


def current_menu(days: Iterable[MenuDay], now: datetime | None = None) -> list[MenuDay]:
    """Keep the days that are later than ``now`` or fall on the same day of the month."""
    now = now or datetime.now(timezone.utc)
    return [day for day in days if day.curdate > now or day.curdate.day == now.day]


def build_menu_embeds(days: Iterable[MenuDay]) -> list[dict[str, Any]]:
    """One embed per day, titled with the weekday, one field per dish."""
    embeds = []
    for day in days:
        embed = Embed().set_title(_WEEKDAYS[day.curdate.weekday()])
        for item in day.items:
            embed.add_field(item.category_en, item.short_description_en)
        embeds.append(embed.to_dict())
    return embeds


def _http_get(url: str) -> bytes:
    with urllib.request.urlopen(url, timeout=30) as response:
        return response.read()


def _load(campus: str, fetch: Callable[[str], bytes | str]) -> list[MenuDay]:
    return parse_menu(fetch(API_URL + campus))


def get_site_content(campus: str) -> list[MenuDay]:
    """Download the menu of ``campus``."""
    return _load(campus, _http_get)


class MenuCommand:
    """Handler for the /menu command."""

    def __init__(self, fetch: Callable[[str], bytes | str] | None = None) -> None:
        self._fetch = fetch or _http_get

    def say_menu(self, session: Any, interaction: Mapping[str, Any]) -> None:
        campus = (interaction.get("data") or {})["options"][0]["value"]
        if not isinstance(campus, str):
            raise TypeError("campus option must be a string")

        days = current_menu(_load(campus, self._fetch))
        try:
            session.interaction_respond(
                interaction,
                {
                    "type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE,
                    "data": {"content": "Here is the menu: ", "embeds": build_menu_embeds(days)},
                },
            )
        except Exception as exc:
            log.warning("%s", exc)

    def install_slash_commands(self, session: Any) -> None:
        install_slash_command(
            session,
            "",
            {
                "name": "menu",
                "description": "Loads the cafetaria menu",
                "options": [
                    {
                        "type": OPTION_STRING,
                        "name": "campus",
                        "description": "The campus to get the menu from",
                        "required": True,
                        "choices": [{"name": c, "value": c} for c in CAMPUSES],
                    }
                ],
            },
        )
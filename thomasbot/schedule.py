"""The /schedule command, listing a class's lessons for the coming week from an iCalendar feed."""

from __future__ import annotations

import logging
import re
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from thomasbot.embed import Embed
from thomasbot.slash import install_slash_command

log = logging.getLogger(__name__)

EPHEMERAL = 64
RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE = 4
OPTION_STRING = 3
OPTION_BOOLEAN = 5
MAX_EMBEDS = 10
WINDOW = timedelta(days=7)
STAFF_MARKER = "Staff member(s):"

_TIME = re.compile(r"(\d{8})(?:T(\d{6}))?Z")
_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_EVENT_PATH = ["VCALENDAR", "VEVENT"]


@dataclass
class ClassSchedule:
    name: str
    start_time: datetime
    end_time: datetime
    room: str
    teachers: str


def _unfold(text: str) -> list[str]:
    lines: list[str] = []
    for raw in text.splitlines():
        if raw[:1] in (" ", "\t") and lines:
            lines[-1] += raw[1:]
        elif raw:
            lines.append(raw)
    return lines


def _split_property(line: str) -> tuple[str, str]:
    in_quotes = False
    for index, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
        elif char == ":" and not in_quotes:
            return line[:index].split(";", 1)[0].upper(), line[index + 1 :]
    raise ValueError(f"malformed content line: {line!r}")


def parse_ical(text: str | bytes) -> list[dict[str, str]]:
    """The events of an iCalendar document, each as a map of property name to raw value."""
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    lines = _unfold(text)
    if not lines or lines[0].strip().upper() != "BEGIN:VCALENDAR":
        raise ValueError("not an iCalendar document")

    events: list[dict[str, str]] = []
    stack: list[str] = []
    current: dict[str, str] | None = None
    for line in lines:
        name, value = _split_property(line)
        if name == "BEGIN":
            stack.append(value.strip().upper())
            if stack == _EVENT_PATH:
                current = {}
        elif name == "END":
            if not stack or stack[-1] != value.strip().upper():
                raise ValueError(f"unexpected END:{value}")
            if stack == _EVENT_PATH and current is not None:
                events.append(current)
                current = None
            stack.pop()
        elif current is not None and stack == _EVENT_PATH:
            current.setdefault(name, value)
    if stack:
        raise ValueError("unterminated component")
    return events


def _parse_time(value: str) -> datetime:
    # times without a zone marker are read as UTC
    if "Z" not in value:
        value += "Z"
    match = _TIME.fullmatch(value)
    if match is None:
        raise ValueError(f"time value not matched: {value!r}")
    date, clock = match.group(1), match.group(2) or "000000"
    return datetime.strptime(date + clock, "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)


def _teachers(description: str) -> str:
    parts = description.split(STAFF_MARKER)
    if len(parts) < 2:
        return ""
    return parts[1].strip().split("\\n")[0]


def parse_schedule(text: str | bytes, now: datetime | None = None) -> list[ClassSchedule]:
    """The classes of the calendar that have not ended and start within a week of ``now``."""
    now = now or datetime.now(timezone.utc)
    out = []
    for event in parse_ical(text):
        try:
            start = _parse_time(event["DTSTART"])
            end = _parse_time(event["DTEND"])
        except (KeyError, ValueError) as exc:
            log.warning("skipping event: %s", exc)
            continue
        if end > now and start < now + WINDOW:
            out.append(
                ClassSchedule(
                    name=event.get("SUMMARY", ""),
                    start_time=start,
                    end_time=end,
                    room=event.get("LOCATION", ""),
                    teachers=_teachers(event.get("DESCRIPTION", "")),
                )
            )
    return out


def fetch_schedule(url: str, now: datetime | None = None) -> list[ClassSchedule]:
    """Download the calendar at ``url`` and return the classes of the coming week."""
    with urllib.request.urlopen(url, timeout=30) as response:
        body = response.read()
    return parse_schedule(body, now)


def _format_start(moment: datetime) -> str:
    return f"{_DAYS[moment.weekday()]} {_MONTHS[moment.month - 1]} {moment.day} {moment:%H:%M}"


def _respond(
    session: Any,
    interaction: Mapping[str, Any],
    content: str,
    flags: int = EPHEMERAL,
    embeds: list[dict[str, Any]] | None = None,
) -> None:
    data: dict[str, Any] = {"content": content, "flags": flags}
    if embeds is not None:
        data["embeds"] = embeds
    session.interaction_respond(interaction, {"type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE, "data": data})


class ScheduleCommand:
    """Handler for the /schedule command."""

    def __init__(
        self,
        database: Any,
        fetch: Callable[[str], list[ClassSchedule]] | None = None,
    ) -> None:
        self.database = database
        self._fetch = fetch or fetch_schedule

    def install_slash_commands(self, session: Any) -> None:
        """Install the command in every guild that has schedules configured."""
        for config in self.database.get_all_configurations():
            if not config.schedules:
                log.info("%s has no schedules", config.guild_id)
                continue
            classes = [{"name": s.class_name, "value": s.class_name} for s in config.schedules]
            install_slash_command(
                session,
                config.guild_id,
                {
                    "name": "schedule",
                    "description": "get a class schedule",
                    "options": [
                        {
                            "name": "class",
                            "type": OPTION_STRING,
                            "description": "the class name",
                            "choices": classes,
                            "required": True,
                        },
                        {
                            "name": "publish",
                            "type": OPTION_BOOLEAN,
                            "description": "post the reply in channel",
                            "required": False,
                        },
                    ],
                },
            )

    def say_schedule(self, session: Any, interaction: Mapping[str, Any]) -> None:
        try:
            conf = self.database.config_for_guild(interaction.get("guild_id", ""))
        except Exception:
            _respond(session, interaction, "Error fetching DB")
            return

        options = (interaction.get("data") or {}).get("options") or []
        if not options:
            _respond(session, interaction, "No options sent")
            return
        name = options[0].get("value")
        if not isinstance(name, str):
            _respond(session, interaction, "No valid option")
            return
        publish = len(options) >= 2 and bool(options[1].get("value"))

        url = next((s.url for s in conf.schedules if s.class_name == name), "")
        if not url:
            _respond(session, interaction, "Could not get schedule: unknown class")
            return

        try:
            classes = self._fetch(url)
        except Exception as exc:
            _respond(session, interaction, f"Could not get schedule: {exc}")
            return

        embeds = [
            Embed()
            .set_title(event.name)
            .set_author(event.room)
            .set_description(
                f"{_format_start(event.start_time)} - {event.end_time:%H:%M}\n{event.teachers}"
            )
            .to_dict()
            for event in classes[:MAX_EMBEDS]
        ]

        flags = 0 if publish else EPHEMERAL
        if not embeds:
            _respond(session, interaction, "No classes found in the next week, enjoy!", flags)
            return
        try:
            _respond(session, interaction, "Here is your schedule:", flags, embeds)
        except Exception as exc:
            log.warning("ScheduleCommand.say_schedule: %s", exc)
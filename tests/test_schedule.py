from datetime import datetime, timedelta, timezone

import pytest

from thomasbot.config import Configuration
from thomasbot.embed import Embed
from thomasbot.schedule import (
    ClassSchedule,
    ScheduleCommand,
    parse_ical,
    parse_schedule,
)

NOW = datetime(2021, 9, 20, 10, 0, tzinfo=timezone.utc)
URL = "https://example.com/1itf.ics"


def calendar(*events):
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0"]
    for summary, start, end, extra in events:
        lines += ["BEGIN:VEVENT", f"SUMMARY:{summary}", f"DTSTART:{start}", f"DTEND:{end}"]
        lines += extra
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


LESSON = calendar(
    (
        "Networking",
        "20210920T130000",
        "20210920T150000",
        ["LOCATION:B300", "DESCRIPTION:Course info\\nStaff member(s): Jane Doe\\nGroup: 1"],
    ),
    ("Old", "20210919T080000", "20210919T090000", ["LOCATION:A1"]),
    ("Far", "20211020T080000", "20211020T090000", ["LOCATION:A2"]),
)


class FakeDB:
    def __init__(self, *configs):
        self.configs = {c.guild_id: c for c in configs}

    def config_for_guild(self, guild_id):
        try:
            return self.configs[guild_id]
        except KeyError:
            raise LookupError("guild not in database") from None

    def get_all_configurations(self):
        return list(self.configs.values())


class FakeSession:
    bot_user_id = "bot"

    def __init__(self):
        self.responses = []
        self.created = []

    def interaction_respond(self, interaction, response):
        self.responses.append(response)

    def application_commands(self, application_id, guild_id):
        return []

    def application_command_create(self, application_id, guild_id, app):
        self.created.append((guild_id, app))

    def application_command_edit(self, application_id, guild_id, command_id, app):
        raise AssertionError("unexpected edit")


def config(guild_id="g1", schedules=None):
    return Configuration.from_dict({"guildID": guild_id, "schedules": schedules or []})


def make_command(text=LESSON):
    fetched = []

    def fetch(url):
        fetched.append(url)
        return parse_schedule(text, NOW)

    db = FakeDB(config(schedules=[{"className": "1ITF", "url": URL}]))
    return ScheduleCommand(db, fetch), fetched


def interaction(*values):
    return {"guild_id": "g1", "data": {"options": [{"value": v} for v in values]}}


def test_parse_ical_unfolds_and_strips_parameters():
    text = "\r\n".join(
        [
            "BEGIN:VCALENDAR",
            "BEGIN:VEVENT",
            "SUMMARY:Net",
            " working",
            'DTSTART;TZID="Europe/Brussels":20210920T130000',
            "END:VEVENT",
            "END:VCALENDAR",
        ]
    )
    events = parse_ical(text)
    assert events == [{"SUMMARY": "Networking", "DTSTART": "20210920T130000"}]


def test_parse_ical_ignores_nested_components():
    text = "\n".join(
        [
            "BEGIN:VCALENDAR",
            "BEGIN:VEVENT",
            "SUMMARY:Lesson",
            "BEGIN:VALARM",
            "SUMMARY:Alarm",
            "END:VALARM",
            "END:VEVENT",
            "END:VCALENDAR",
        ]
    )
    assert parse_ical(text) == [{"SUMMARY": "Lesson"}]


@pytest.mark.parametrize(
    "text",
    [
        "",
        "BEGIN:VEVENT\nEND:VEVENT",
        "BEGIN:VCALENDAR\nBEGIN:VEVENT\n",
        "BEGIN:VCALENDAR\nEND:VEVENT\nEND:VCALENDAR",
        "BEGIN:VCALENDAR\nno colon here\nEND:VCALENDAR",
    ],
)
def test_parse_ical_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_ical(text)


def test_parse_schedule_keeps_coming_week():
    classes = parse_schedule(LESSON, NOW)
    assert classes == [
        ClassSchedule(
            name="Networking",
            start_time=datetime(2021, 9, 20, 13, 0, tzinfo=timezone.utc),
            end_time=datetime(2021, 9, 20, 15, 0, tzinfo=timezone.utc),
            room="B300",
            teachers="Jane Doe",
        )
    ]


def test_parse_schedule_window_invariant():
    for item in parse_schedule(LESSON, NOW):
        assert item.end_time > NOW
        assert item.start_time < NOW + timedelta(days=7)


def test_parse_schedule_accepts_explicit_utc_and_dates():
    text = calendar(("Day", "20210921Z", "20210922Z", []))
    (item,) = parse_schedule(text, NOW)
    assert item.start_time == datetime(2021, 9, 21, tzinfo=timezone.utc)
    assert item.teachers == ""
    assert item.room == ""


def test_parse_schedule_skips_bad_times():
    text = calendar(("Broken", "yesterday", "20210920T150000", []))
    assert parse_schedule(text, NOW) == []


def test_say_schedule_builds_embeds():
    command, fetched = make_command()
    session = FakeSession()
    command.say_schedule(session, interaction("1ITF"))
    assert fetched == [URL]
    data = session.responses[0]["data"]
    assert data["content"] == "Here is your schedule:"
    assert data["flags"] == 64
    expected = (
        Embed()
        .set_title("Networking")
        .set_author("B300")
        .set_description("Mon Sep 20 13:00 - 15:00\nJane Doe")
        .to_dict()
    )
    assert data["embeds"] == [expected]


def test_say_schedule_publish_clears_flags():
    command, _ = make_command()
    session = FakeSession()
    command.say_schedule(session, interaction("1ITF", True))
    assert session.responses[0]["data"]["flags"] == 0


def test_say_schedule_limits_to_ten_embeds():
    events = [
        (f"Lesson {n}", f"202109{21 + n // 6:02d}T{8 + n % 6:02d}0000", f"202109{21 + n // 6:02d}T{9 + n % 6:02d}0000", [])
        for n in range(12)
    ]
    command, _ = make_command(calendar(*events))
    session = FakeSession()
    command.say_schedule(session, interaction("1ITF"))
    assert len(parse_schedule(calendar(*events), NOW)) == 12
    assert len(session.responses[0]["data"]["embeds"]) == 10


def test_say_schedule_no_classes():
    command, _ = make_command(calendar())
    session = FakeSession()
    command.say_schedule(session, interaction("1ITF"))
    assert session.responses[0]["data"]["content"] == "No classes found in the next week, enjoy!"


@pytest.mark.parametrize(
    "payload, content",
    [
        ({"guild_id": "other", "data": {"options": [{"value": "1ITF"}]}}, "Error fetching DB"),
        ({"guild_id": "g1", "data": {"options": []}}, "No options sent"),
        ({"guild_id": "g1", "data": {"options": [{"value": 5}]}}, "No valid option"),
        ({"guild_id": "g1", "data": {"options": [{"value": "2ITF"}]}}, "Could not get schedule: unknown class"),
    ],
)
def test_say_schedule_errors(payload, content):
    command, fetched = make_command()
    session = FakeSession()
    command.say_schedule(session, payload)
    assert len(session.responses) == 1
    assert session.responses[0]["data"]["content"] == content
    assert fetched == []


def test_say_schedule_fetch_error():
    def fetch(url):
        raise OSError("down")

    db = FakeDB(config(schedules=[{"className": "1ITF", "url": URL}]))
    session = FakeSession()
    ScheduleCommand(db, fetch).say_schedule(session, interaction("1ITF"))
    assert session.responses[0]["data"]["content"] == "Could not get schedule: down"


def test_install_only_guilds_with_schedules():
    db = FakeDB(
        config("g1", [{"className": "1ITF", "url": URL}, {"className": "2ITF", "url": URL}]),
        config("g2"),
    )
    session = FakeSession()
    ScheduleCommand(db).install_slash_commands(session)
    assert [guild for guild, _ in session.created] == ["g1"]
    app = session.created[0][1]
    assert app["name"] == "schedule"
    assert [c["value"] for c in app["options"][0]["choices"]] == ["1ITF", "2ITF"]
    assert app["options"][1]["required"] is False
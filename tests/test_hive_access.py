import pytest

from thomasbot.config import Configuration, HiveConfiguration, LocalDatabase
from thomasbot.hive import DEFAULT_ALLOWS, OVERWRITE_MEMBER, OVERWRITE_ROLE, HiveCommand
from thomasbot.hive_access import (
    INFO_DESK_ID,
    MAX_HISTORY_PAGES,
    RESPONSE_DEFERRED_MESSAGE_UPDATE,
    handle_join,
    handle_reaction,
    join,
    parse_verify,
    remove_duplicate_values,
    say_attendance,
    say_verify,
)

ADMIN = "687715371255463972"
GUILD = "guild-1"
REQUEST = "request-1"
TEXT_CAT = "text-cat"
VOICE_CAT = "voice-cat"


class FakeSession:
    bot_user_id = "bot"

    def __init__(self, channels=None, members=None, pages=None, endless=False):
        self.channels = channels or {}
        self.members = members or {}
        self.pages = list(pages or [])
        self.endless = endless
        self.sent = []
        self.embeds = []
        self.permissions = []
        self.responses = []
        self.reactions = []
        self.history_calls = []
        self.messages = {}

    def channel(self, channel_id):
        if channel_id not in self.channels:
            raise LookupError(f"unknown channel {channel_id}")
        return self.channels[channel_id]

    def channel_message(self, channel_id, message_id):
        return self.messages[message_id]

    def channel_message_send(self, channel_id, content):
        self.sent.append((channel_id, content))
        return {"id": "sent"}

    def channel_message_send_embed(self, channel_id, embed):
        self.embeds.append((channel_id, embed))
        return {"id": "embed-msg"}

    def channel_permission_set(self, channel_id, target, kind, allow, deny):
        self.permissions.append((channel_id, target, kind, allow, deny))

    def guild_member(self, guild_id, user_id):
        if user_id not in self.members:
            raise LookupError("no member")
        return self.members[user_id]

    def channel_messages(self, channel_id, limit, before):
        self.history_calls.append(before)
        if self.endless:
            n = len(self.history_calls)
            return [{"id": f"h{n}", "author": {"id": "u1"}}]
        return self.pages.pop(0) if self.pages else []

    def interaction_respond(self, interaction, response):
        self.responses.append(response)

    def message_reaction_add(self, channel_id, message_id, emoji):
        self.reactions.append((channel_id, message_id, emoji))


def make_hive():
    conf = Configuration(
        hives=[
            HiveConfiguration(
                request_channel_ids=[REQUEST],
                text_category_id=TEXT_CAT,
                voice_category_id=VOICE_CAT,
                prefix="h-",
            )
        ]
    )
    return HiveCommand(LocalDatabase({GUILD: conf}))


def hive_message(target_id, author="bot", title="Hive Channel"):
    return {
        "author": {"id": author},
        "embeds": [{"title": title, "fields": [{"name": "name", "value": "x"}, {"name": "id", "value": target_id}]}],
    }


def test_remove_duplicate_values_keeps_first_order():
    assert remove_duplicate_values(["a", "b", "a", "c", "b"]) == ["a", "b", "c"]


def test_parse_verify_extracts_id_and_description():
    assert parse_verify("tm!verify 123 some text") == ("123", "some text")


def test_parse_verify_rejects_missing_description():
    assert parse_verify("tm!verify abc") is None


def test_join_grants_permission_and_welcomes():
    session = FakeSession(channels={"c1": {"id": "c1", "parent_id": TEXT_CAT, "permission_overwrites": []}})
    join(make_hive(), session, GUILD, "u9", REQUEST, hive_message("c1"))
    assert session.permissions == [("c1", "u9", OVERWRITE_MEMBER, DEFAULT_ALLOWS, 0)]
    assert session.sent == [("c1", "Welcome <@u9>, you can leave any time by saying `/leave`")]


def test_join_existing_member_gets_no_welcome():
    overwrites = [{"id": "u9", "type": OVERWRITE_MEMBER}]
    session = FakeSession(channels={"c1": {"id": "c1", "parent_id": VOICE_CAT, "permission_overwrites": overwrites}})
    join(make_hive(), session, GUILD, "u9", REQUEST, hive_message("c1"))
    assert len(session.permissions) == 1
    assert session.sent == []


def test_join_role_overwrite_with_same_id_still_welcomes():
    overwrites = [{"id": "u9", "type": OVERWRITE_ROLE}]
    session = FakeSession(channels={"c1": {"id": "c1", "parent_id": TEXT_CAT, "permission_overwrites": overwrites}})
    join(make_hive(), session, GUILD, "u9", REQUEST, hive_message("c1"))
    assert len(session.sent) == 1


@pytest.mark.parametrize(
    "message",
    [
        hive_message("c1", author="someone"),
        hive_message("c1", title="Other"),
        {"author": {"id": "bot"}, "embeds": []},
    ],
)
def test_join_ignores_foreign_messages(message):
    session = FakeSession(channels={"c1": {"id": "c1", "parent_id": TEXT_CAT}})
    join(make_hive(), session, GUILD, "u9", REQUEST, message)
    assert session.permissions == []


def test_join_ignores_channel_outside_hive():
    session = FakeSession(channels={"c1": {"id": "c1", "parent_id": "elsewhere"}})
    join(make_hive(), session, GUILD, "u9", REQUEST, hive_message("c1"))
    assert session.permissions == []


def test_join_ignores_non_request_channel():
    session = FakeSession(channels={"c1": {"id": "c1", "parent_id": TEXT_CAT}})
    join(make_hive(), session, GUILD, "u9", "not-a-request", hive_message("c1"))
    assert session.permissions == []


def test_handle_join_defers_update():
    session = FakeSession(channels={"c1": {"id": "c1", "parent_id": TEXT_CAT}})
    interaction = {
        "type": 3,
        "data": {"custom_id": "hive_join"},
        "guild_id": GUILD,
        "channel_id": REQUEST,
        "member": {"user": {"id": "u9"}},
        "message": hive_message("c1"),
    }
    handle_join(make_hive(), session, interaction)
    assert session.responses == [{"type": RESPONSE_DEFERRED_MESSAGE_UPDATE}]
    assert session.permissions[0][1] == "u9"


def test_handle_join_ignores_other_buttons():
    session = FakeSession()
    handle_join(make_hive(), session, {"type": 3, "data": {"custom_id": "other"}})
    assert session.responses == []


def test_handle_reaction_joins_through_message():
    session = FakeSession(channels={"c1": {"id": "c1", "parent_id": TEXT_CAT}})
    session.messages["m1"] = hive_message("c1")
    reaction = {"channel_id": REQUEST, "message_id": "m1", "guild_id": GUILD, "user_id": "u5"}
    handle_reaction(make_hive(), session, reaction)
    assert session.permissions[0][:2] == ("c1", "u5")


def test_attendance_rejects_non_admin():
    session = FakeSession()
    say_attendance(session, {"author": {"id": "nobody"}, "channel_id": "c1", "guild_id": GUILD})
    assert session.sent == [("c1", "nobody is not in the sudoers file. This incident will be reported.")]


def test_attendance_lists_members_and_active_users():
    channel = {
        "id": "c1",
        "permission_overwrites": [
            {"id": "u1", "type": OVERWRITE_MEMBER},
            {"id": "u2", "type": OVERWRITE_MEMBER},
            {"id": "role", "type": OVERWRITE_ROLE},
        ],
    }
    members = {"u1": {"nick": "Ann", "user": {"username": "ann1"}}, "u2": {"nick": "", "user": {"username": "bob"}}}
    pages = [
        [
            {"id": "m3", "author": {"id": "u1"}},
            {"id": "m2", "author": {"id": "bot"}},
            {"id": "m1", "author": {"id": "u1"}},
        ]
    ]
    session = FakeSession(channels={"c1": channel}, members=members, pages=pages)
    say_attendance(session, {"author": {"id": ADMIN}, "channel_id": "c1", "guild_id": GUILD})
    target, embed = session.embeds[0]
    fields = {f["name"]: f["value"] for f in embed["fields"]}
    assert target == "c1"
    assert embed["title"] == "Attendance List"
    assert fields["people in channel"] == "Ann\nbob"
    assert fields["number of people in channel"] == str(len(["Ann", "bob"]))
    assert fields["active people in channel"] == "Ann"
    assert session.history_calls == ["", "m1"]


def test_attendance_stops_after_page_limit():
    session = FakeSession(channels={"c1": {"id": "c1"}}, endless=True)
    say_attendance(session, {"author": {"id": ADMIN}, "channel_id": "c1", "guild_id": GUILD})
    assert len(session.history_calls) == MAX_HISTORY_PAGES


def test_verify_posts_embed_to_info_desk():
    session = FakeSession(channels={"42": {"id": "42", "name": "h-games"}})
    say_verify(session, {"author": {"id": ADMIN}, "channel_id": "c1", "content": "tm!verify 42 play together"})
    target, embed = session.embeds[0]
    assert target == INFO_DESK_ID
    assert [f["value"] for f in embed["fields"]] == ["h-games", "play together", "42"]
    assert session.reactions == [(INFO_DESK_ID, "embed-msg", "👋")]


def test_verify_reports_bad_syntax():
    session = FakeSession()
    say_verify(session, {"author": {"id": ADMIN}, "channel_id": "c1", "content": "tm!verify"})
    assert session.sent == [("c1", "invalid syntax, needs to be ID + description")]
import pytest

from thomasbot.slash import SlashInstallError, install_slash_command


class FakeSession:
    bot_user_id = "bot"

    def __init__(self, commands=None, fail=None):
        self.commands = commands or []
        self.fail = fail
        self.created = []
        self.edited = []

    def application_commands(self, app_id, guild_id):
        if self.fail == "get":
            raise RuntimeError("boom")
        return self.commands

    def application_command_create(self, app_id, guild_id, app):
        if self.fail == "create":
            raise RuntimeError("boom")
        self.created.append((app_id, guild_id, app))

    def application_command_edit(self, app_id, guild_id, command_id, app):
        if self.fail == "edit":
            raise RuntimeError("boom")
        self.edited.append((app_id, guild_id, command_id, app))


APP = {
    "name": "link",
    "description": "Gives a useful link",
    "options": [{"type": 3, "name": "name", "description": "name of the link", "required": True}],
}


def test_creates_missing_command():
    session = FakeSession(commands=[{"id": "1", "name": "other", "options": []}])
    install_slash_command(session, "g1", APP)
    assert session.created == [("bot", "g1", APP)]
    assert session.edited == []


def test_edits_changed_command():
    session = FakeSession(commands=[{"id": "7", "name": "link", "options": []}])
    install_slash_command(session, "", APP)
    assert session.edited == [("bot", "", "7", APP)]
    assert session.created == []


def test_identical_command_is_left_alone():
    session = FakeSession(commands=[{"id": "7", "name": "link", "options": list(APP["options"])}])
    install_slash_command(session, "", APP)
    assert session.created == [] and session.edited == []


def test_missing_options_equal_empty_options():
    app = {"name": "leave", "description": "Leave", "options": []}
    session = FakeSession(commands=[{"id": "3", "name": "leave", "options": None}])
    install_slash_command(session, "", app)
    assert session.created == [] and session.edited == []


@pytest.mark.parametrize("stage", ["get", "create"])
def test_failures_are_wrapped(stage):
    session = FakeSession(fail=stage)
    with pytest.raises(SlashInstallError):
        install_slash_command(session, "", APP)


def test_edit_failure_names_command():
    session = FakeSession(commands=[{"id": "7", "name": "link", "options": []}], fail="edit")
    with pytest.raises(SlashInstallError, match="link"):
        install_slash_command(session, "", APP)
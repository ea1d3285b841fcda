import json

import pytest

from thomasbot.config import (
    Configuration,
    GuildNotFoundError,
    HiveConfiguration,
    LocalDatabase,
    MongoDatabase,
)

SAMPLE = {
    "guildID": "111",
    "welcomeChannelID": "222",
    "welcomeText": "Welcome {{.User.Username}}",
    "welcomeDM": ["hello", "there"],
    "roleManagement": {
        "roleAdminChannelID": "333",
        "defaultRole": "444",
        "roleSets": [
            {"message": "pick", "roles": [{"id": "555", "emoji": "👋"}]},
        ],
    },
    "hives": [
        {
            "requestChannelIDs": ["666", "667"],
            "junkyardCategoryID": "777",
            "textCategoryID": "888",
            "voiceCategoryID": "999",
            "prefix": "~",
            "voiceBitrate": 64000,
        }
    ],
    "lookingForPlayers": [
        {"requestChannelIDs": ["1"], "advertiseChannelID": "2", "hiveChannelID": "3"}
    ],
    "schedules": [{"className": "1ITF", "url": "https://example.com/cal.ics"}],
}


class FakeCollection:
    def __init__(self, documents):
        self.documents = documents

    def _matches(self, document, query):
        return all(document.get(k) == v for k, v in query.items())

    def find_one(self, query):
        return next((d for d in self.documents if self._matches(d, query)), None)

    def find(self, query):
        return [d for d in self.documents if self._matches(d, query)]


def test_round_trip():
    assert Configuration.from_dict(SAMPLE).to_dict() == SAMPLE


def test_nested_values_parsed():
    conf = Configuration.from_dict(SAMPLE)
    assert conf.hives[0] == HiveConfiguration(
        request_channel_ids=["666", "667"],
        junkyard_category_id="777",
        text_category_id="888",
        voice_category_id="999",
        prefix="~",
        voice_bitrate=64000,
    )
    assert conf.role_management.role_sets[0].roles[0].emoji == "👋"
    assert conf.schedules[0].class_name == "1ITF"


def test_defaults_for_empty_document():
    conf = Configuration.from_dict({})
    assert conf.guild_id == ""
    assert conf.hives == []
    assert conf.role_management.role_sets == []
    assert conf.welcome_dm == []


def test_local_from_file_sets_guild_id(tmp_path):
    body = {k: v for k, v in SAMPLE.items() if k != "guildID"}
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"abc": body}), encoding="utf-8")
    db = LocalDatabase.from_file(path)
    conf = db.config_for_guild("abc")
    assert conf.guild_id == "abc"
    assert conf.welcome_text == SAMPLE["welcomeText"]


def test_local_missing_guild_raises():
    db = LocalDatabase({"a": Configuration()})
    with pytest.raises(GuildNotFoundError):
        db.config_for_guild("b")


def test_local_get_all_sets_keys():
    db = LocalDatabase({"a": Configuration(), "b": Configuration(welcome_text="x")})
    configs = db.get_all_configurations()
    assert sorted(c.guild_id for c in configs) == ["a", "b"]


def test_local_stored_config_not_modified():
    stored = Configuration(guild_id="")
    db = LocalDatabase({"a": stored})
    db.config_for_guild("a")
    assert stored.guild_id == ""


def test_local_from_file_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        LocalDatabase.from_file(path)


def test_local_from_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        LocalDatabase.from_file(tmp_path / "nope.json")


def test_mongo_config_for_guild():
    doc = dict(SAMPLE, _id="objectid")
    db = MongoDatabase({"configuration": FakeCollection([doc])})
    conf = db.config_for_guild("111")
    assert conf.to_dict() == SAMPLE


def test_mongo_missing_guild_raises():
    db = MongoDatabase({"configuration": FakeCollection([SAMPLE])})
    with pytest.raises(GuildNotFoundError):
        db.config_for_guild("nothere")


def test_mongo_get_all():
    other = dict(SAMPLE, guildID="112")
    db = MongoDatabase({"configuration": FakeCollection([SAMPLE, other])})
    assert [c.guild_id for c in db.get_all_configurations()] == ["111", "112"]
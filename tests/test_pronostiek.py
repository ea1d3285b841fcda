import json

import pytest

from thomasbot.pronostiek import (
    API_URL,
    ITF_DISCORD,
    MAX_FIELDS_PER_EMBED,
    PronostiekCommand,
    Rank,
    build_embeds,
    fetch_ranks,
    get_medal,
)


class FakeSession:
    bot_user_id = "bot"

    def __init__(self):
        self.responses = []
        self.created = []

    def interaction_respond(self, interaction, response):
        self.responses.append(response)

    def application_commands(self, app_id, guild_id):
        return []

    def application_command_create(self, app_id, guild_id, app):
        self.created.append((guild_id, app))


def ranks(count):
    return [Rank(name=f"p{i}", totalscore=str(i), all_correct=i) for i in range(count)]


def interaction(rank):
    return {"data": {"options": [{"name": "rank", "value": rank}]}}


def test_medals_for_top_three():
    assert [get_medal(i) for i in range(3)] == ["🥇", "🥈", "🥉"]


def test_plain_number_after_podium():
    assert get_medal(3) == "4"


def test_rank_from_dict():
    rank = Rank.from_dict({"name": "ann", "totalscore": "12", "allCorrect": 3})
    assert rank == Rank(name="ann", totalscore="12", all_correct=3)


def test_five_ranks_fit_one_embed():
    embeds = build_embeds("Studenten", ranks(5))
    assert len(embeds) == 1
    assert len(embeds[0]["fields"]) == MAX_FIELDS_PER_EMBED


def test_sixth_rank_starts_new_embed():
    embeds = build_embeds("Studenten", ranks(6))
    assert [len(e["fields"]) for e in embeds] == [MAX_FIELDS_PER_EMBED, 3]
    assert all(e["title"] == "Rank Studenten" for e in embeds)
    assert all(f["inline"] for e in embeds for f in e["fields"])


def test_field_contents():
    embed = build_embeds("Docenten", [Rank(name="ann", totalscore="12", all_correct=3)])[0]
    assert embed["fields"] == [
        {"name": "Name", "value": "🥇 ann", "inline": True},
        {"name": "Score", "value": "12", "inline": True},
        {"name": "Correct", "value": "3", "inline": True},
    ]


def test_empty_ranking_gives_titled_embed():
    assert build_embeds("Docenten", []) == [{"title": "Rank Docenten"}]


def test_fetch_ranks_builds_url_and_decodes():
    urls = []

    def fetch(url):
        urls.append(url)
        return json.dumps([{"name": "ann", "totalscore": "9", "allCorrect": 1}]).encode()

    result = fetch_ranks("Studenten", fetch)
    assert urls == [API_URL + "Studenten"]
    assert result == [Rank(name="ann", totalscore="9", all_correct=1)]


def test_fetch_ranks_rejects_non_list():
    with pytest.raises(ValueError):
        fetch_ranks("x", lambda url: "{}")


def test_slash_command_success():
    payload = json.dumps([{"name": "ann", "totalscore": "9", "allCorrect": 1}])
    session = FakeSession()
    PronostiekCommand(lambda url: payload).slash_command(session, interaction("Studenten"))
    data = session.responses[0]["data"]
    assert data["content"] == "Ook een gokje wagen? https://prono.inmijneendje.be/"
    assert data["embeds"][0]["title"] == "Rank Studenten"


def test_slash_command_reports_fetch_error():
    def fetch(url):
        raise OSError("down")

    session = FakeSession()
    PronostiekCommand(fetch).slash_command(session, interaction("Studenten"))
    data = session.responses[0]["data"]
    assert data["flags"] == 64
    assert data["content"].startswith("An error occured: ")
    assert "down" in data["content"]


def test_install_targets_itf_guild():
    session = FakeSession()
    PronostiekCommand().install_slash_commands(session)
    guild_id, app = session.created[0]
    assert guild_id == ITF_DISCORD
    assert [c["value"] for c in app["options"][0]["choices"]] == ["Studenten", "Docenten"]
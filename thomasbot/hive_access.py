"""Joining hidden hive channels, attendance lists and verified hive announcements."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping

from thomasbot.embed import Embed
from thomasbot.hive import DEFAULT_ALLOWS, OVERWRITE_MEMBER, HiveCommand
from thomasbot.sudo import is_admin

log = logging.getLogger(__name__)

INTERACTION_MESSAGE_COMPONENT = 3
RESPONSE_DEFERRED_MESSAGE_UPDATE = 6

INFO_DESK_ID = "794973874634752040"
HIVE_EMBED_TITLE = "Hive Channel"
MAX_HISTORY_PAGES = 20
HISTORY_PAGE_SIZE = 100

_VERIFY_PATTERN = re.compile(r"!verify ([0-9]*) (.*)\Z")


def _not_sudoer(user_id: str) -> str:
    return f"{user_id} is not in the sudoers file. This incident will be reported."


def _display_name(member: Mapping[str, Any]) -> str:
    return member.get("nick") or (member.get("user") or {}).get("username", "")


def remove_duplicate_values(values: Iterable[str]) -> list[str]:
    """Drop repeated values, keeping the first occurrence of each."""
    return list(dict.fromkeys(values))


def parse_verify(content: str) -> tuple[str, str] | None:
    """Extract (channel ID, description) from a ``!verify`` message, or None."""
    match = _VERIFY_PATTERN.search(content)
    if match is None:
        return None
    return match.group(1), match.group(2)


def handle_join(hive: HiveCommand, session: Any, interaction: Mapping[str, Any]) -> None:
    """Handle a click on the "Join Channel" button of a hidden hive."""
    data = interaction.get("data") or {}
    if interaction.get("type") != INTERACTION_MESSAGE_COMPONENT or data.get("custom_id") != "hive_join":
        return
    join(
        hive,
        session,
        interaction.get("guild_id", ""),
        interaction["member"]["user"]["id"],
        interaction.get("channel_id", ""),
        interaction.get("message") or {},
    )
    session.interaction_respond(interaction, {"type": RESPONSE_DEFERRED_MESSAGE_UPDATE})


def handle_reaction(hive: HiveCommand, session: Any, reaction: Mapping[str, Any]) -> None:
    """Handle a reaction on a hive announcement as a join request."""
    channel_id = reaction.get("channel_id", "")
    try:
        message = session.channel_message(channel_id, reaction.get("message_id", ""))
    except Exception:
        log.warning("Cannot get message of reaction %s", channel_id)
        return
    join(hive, session, reaction.get("guild_id", ""), reaction.get("user_id", ""), channel_id, message)


def join(
    hive: HiveCommand,
    session: Any,
    guild_id: str,
    user_id: str,
    channel_id: str,
    message: Mapping[str, Any],
) -> None:
    """Give ``user_id`` access to the hive channel announced in ``message``."""
    if (message.get("author") or {}).get("id") != session.bot_user_id:
        return
    embeds = message.get("embeds") or []
    if not embeds:
        return
    fields = embeds[0].get("fields") or []
    if len(fields) < 2 or embeds[0].get("title") != HIVE_EMBED_TITLE:
        return

    try:
        channel = session.channel(fields[-1].get("value", ""))
        conf = hive.config_for_request_channel(guild_id, channel_id)
    except Exception as exc:
        log.warning("%s", exc)
        return
    if conf is None:
        return
    if channel.get("parent_id") not in (conf.voice_category_id, conf.text_category_id):
        return

    try:
        session.channel_permission_set(channel["id"], user_id, OVERWRITE_MEMBER, DEFAULT_ALLOWS, 0)
    except Exception as exc:
        log.warning("Cannot set permissions %s", exc)
        return

    # permissions are always rewritten to repair old ones; greet only newcomers
    already_in = any(
        ow.get("type") == OVERWRITE_MEMBER and ow.get("id") == user_id
        for ow in channel.get("permission_overwrites") or []
    )
    if not already_in:
        session.channel_message_send(
            channel["id"], f"Welcome <@{user_id}>, you can leave any time by saying `/leave`"
        )


def _member_names(session: Any, guild_id: str, user_ids: Iterable[str]) -> list[str]:
    names = []
    for user_id in user_ids:
        try:
            member = session.guild_member(guild_id, user_id)
        except Exception:
            continue
        names.append(_display_name(member))
    return names


def _history_authors(session: Any, channel_id: str) -> list[str]:
    authors: list[str] = []
    last_id = ""
    for _ in range(MAX_HISTORY_PAGES):
        try:
            messages = session.channel_messages(channel_id, HISTORY_PAGE_SIZE, last_id)
        except Exception:
            break
        if not messages:
            break
        authors.extend(m["author"]["id"] for m in messages)
        last_id = messages[-1]["id"]
    return authors


def say_attendance(session: Any, message: Mapping[str, Any]) -> None:
    """Post who has access to the channel and who has written in it."""
    author_id = message["author"]["id"]
    channel_id = message.get("channel_id", "")
    guild_id = message.get("guild_id", "")
    if not is_admin(author_id):
        session.channel_message_send(channel_id, _not_sudoer(author_id))
        return

    try:
        channel = session.channel(channel_id)
    except Exception as exc:
        session.channel_message_send(channel_id, str(exc))
        return

    member_ids = [
        ow.get("id") for ow in channel.get("permission_overwrites") or [] if ow.get("type") == OVERWRITE_MEMBER
    ]
    names = _member_names(session, guild_id, member_ids)

    active_ids = [
        uid for uid in remove_duplicate_values(_history_authors(session, channel_id)) if uid != session.bot_user_id
    ]
    active_names = _member_names(session, guild_id, active_ids)

    embed = Embed().set_title("Attendance List")
    if names:
        embed.add_field("people in channel", "\n".join(names))
        embed.add_field("number of people in channel", str(len(names)))
    if active_names:
        embed.add_field("active people in channel", "\n".join(active_names))
        embed.add_field("number of active people in channel", str(len(active_names)))

    try:
        session.channel_message_send_embed(channel_id, embed.to_dict())
    except Exception as exc:
        log.warning("%s", exc)


def say_verify(session: Any, message: Mapping[str, Any]) -> None:
    """Announce a hive channel at the info desk so people can join it."""
    author_id = message["author"]["id"]
    channel_id = message.get("channel_id", "")
    if not is_admin(author_id):
        session.channel_message_send(channel_id, _not_sudoer(author_id))
        return

    parsed = parse_verify(message.get("content", ""))
    if parsed is None:
        session.channel_message_send(channel_id, "invalid syntax, needs to be ID + description")
        return
    target_id, description = parsed

    try:
        channel = session.channel(target_id)
    except Exception as exc:
        session.channel_message_send(channel_id, str(exc))
        return

    embed = (
        Embed()
        .set_title(HIVE_EMBED_TITLE)
        .add_field("name", channel.get("name", ""))
        .add_field("description", description)
        .add_field("id", channel["id"])
    )
    try:
        sent = session.channel_message_send_embed(INFO_DESK_ID, embed.to_dict())
    except Exception as exc:
        log.warning("%s", exc)
        return
    session.message_reaction_add(INFO_DESK_ID, sent["id"], "👋")
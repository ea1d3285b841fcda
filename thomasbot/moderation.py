"""Moderation: link filtering, reaction flood control, muting, alerts and member counts."""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import re
import threading
import time
from typing import Any, Callable, Hashable, Iterable, Mapping

from thomasbot.embed import Embed
from thomasbot.sudo import is_admin, is_bot_dev

log = logging.getLogger(__name__)

ITF_DISCORD = "687565213943332875"
ITF_WARROOM = "702902280206286858"
ITF_GUEST_ROLE = "687568536356257890"

MAX_EMBED_FIELDS = 25
MEMBER_PAGE_SIZE = 1000
CLEAN_PAGE_SIZE = 50
REACTION_LIMIT = 3

CHECK_TTL = 60
USER_TTL = 2 * 60
REACTION_TTL = 2 * 60
NOTIFY_TTL = 3 * 60

NOTIFY_MESSAGE = (
    "Hallo! Ik heb een bericht van je verwijderd omdat het inging tegen de Thomas More ITFactory Discord regels."
)
NOTIFY_REACTION = (
    "Hallo! Ik heb je reactie van je verwijderd omdat het inging tegen de Thomas More ITFactory Discord regels."
)
DM_REPLY = (
    "Oh my... human language... let me try... "
    + " ".join(format(ord(c), "08b") for c in "if you can read this, contribute on github")
    + "...\n\n Oh no, I still cannot understand humans. "
    "I'm sorry if you need me type `/` to get a list of things I can do for you!"
)

_SCHEMES_NO_AUTHORITY = ("bitcoin", "cid", "file", "magnet", "mailto", "mid", "sms", "tel", "xmpp")
_STRICT_URL = re.compile(
    r"(?:[a-z][a-z0-9.+\-]*://|(?:" + "|".join(_SCHEMES_NO_AUTHORITY) + r"):)[^\s<>\"'`]+",
    re.IGNORECASE,
)
_MUTE_PATTERN = re.compile(r"!u?n?mute <(.*)>")


def _not_sudoer(user_id: str) -> str:
    return f"{user_id} is not in the sudoers file. This incident will be reported."


def contains_link(content: str) -> bool:
    """Whether any space-separated word of ``content`` holds a URL with a scheme."""
    return any(_STRICT_URL.search(part) for part in content.split(" "))


def is_user_safe(member: Mapping[str, Any]) -> bool:
    """Everyone is trusted except members carrying the guest role."""
    return ITF_GUEST_ROLE not in (member.get("roles") or [])


def content_hash(text: str) -> str:
    """URL-safe base64 of the SHA-256 digest of ``text``."""
    return base64.urlsafe_b64encode(hashlib.sha256(text.encode("utf-8")).digest()).decode("ascii")


def parse_mute_target(content: str) -> str | None:
    """The user ID from a ``!mute <@!id>`` or ``!unmute <@!id>`` message, or None."""
    match = _MUTE_PATTERN.search(content)
    if match is None:
        return None
    return match.group(1)[2:]


def sort_roles(
    roles: Iterable[Mapping[str, Any]], counts: Mapping[str, int], by_amount: bool
) -> list[Mapping[str, Any]]:
    """Order roles by position, highest first, or by member count when ``by_amount``."""
    ordered = sorted(roles, key=lambda role: role.get("position", 0), reverse=True)
    if by_amount:
        ordered.sort(key=lambda role: counts.get(role.get("id", ""), 0), reverse=True)
    return ordered


class TTLCache:
    """A namespaced key/value store whose entries expire after a time to live."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[tuple[str, Hashable], tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, namespace: str, key: Hashable) -> Any:
        """The stored value; raises KeyError when missing or expired."""
        with self._lock:
            entry = self._entries.get((namespace, key))
            if entry is None:
                raise KeyError((namespace, key))
            value, expires = entry
            if self._clock() >= expires:
                del self._entries[(namespace, key)]
                raise KeyError((namespace, key))
            return value

    def set(self, namespace: str, key: Hashable, value: Any, ttl: float) -> None:
        with self._lock:
            self._entries[(namespace, key)] = (value, self._clock() + ttl)

    def __contains__(self, item: tuple[str, Hashable]) -> bool:
        namespace, key = item
        try:
            self.get(namespace, key)
        except KeyError:
            return False
        return True


def _emoji_api_name(emoji: Mapping[str, Any]) -> str:
    name = emoji.get("name", "")
    emoji_id = emoji.get("id")
    return f"{name}:{emoji_id}" if emoji_id else name


def _icon_url(guild: Mapping[str, Any]) -> str:
    icon = guild.get("icon")
    if not icon:
        return ""
    extension = "gif" if icon.startswith("a_") else "png"
    return f"https://cdn.discordapp.com/icons/{guild.get('id', '')}/{icon}.{extension}"


_CHECKS: tuple[Callable[[str], bool], ...] = (contains_link,)


class ModerationCommands:
    """Handlers for the moderation commands and the message and reaction filters."""

    def __init__(self, cache: TTLCache | None = None) -> None:
        self.cache = cache or TTLCache()

    def say_alert(self, session: Any, message: Mapping[str, Any]) -> None:
        """Forward an alert to the moderators' war room."""
        author_id = message["author"]["id"]
        channel_id = message.get("channel_id", "")
        try:
            dm = session.user_channel_create(author_id)
        except Exception:
            session.channel_message_send(channel_id, "Cannot DM user")
            return

        if dm["id"] == channel_id:
            session.channel_message_send(channel_id, "Cannot alert in DMs")
            return
        session.channel_message_delete(channel_id, message.get("id", ""))

        if message.get("guild_id") != ITF_DISCORD:
            session.channel_message_send(dm["id"], "Can only alert in ITFactory")
            return

        session.channel_message_send(dm["id"], "Alert sent! Thank you.")
        session.channel_message_send(ITF_WARROOM, f":warning: Alert by <@{author_id}> in <#{channel_id}>")

    def clean_channel(self, session: Any, message: Mapping[str, Any]) -> None:
        """Delete every message in the channel, in batches."""
        author_id = message["author"]["id"]
        channel_id = message.get("channel_id", "")
        if not is_admin(author_id):
            session.channel_message_send(channel_id, _not_sudoer(author_id))
            return

        while True:
            try:
                messages = session.channel_messages(channel_id, CLEAN_PAGE_SIZE, "")
            except Exception as exc:
                session.channel_message_send(channel_id, f"Error: {exc}")
                return
            ids = [m["id"] for m in messages or []]
            if not ids:
                break
            try:
                session.channel_messages_bulk_delete(channel_id, ids)
            except Exception as exc:
                session.channel_message_send(channel_id, f"Error: {exc}")
                return

        log.info("%s has cleared messages in %s", author_id, channel_id)

    def _get_user(self, session: Any, guild_id: str, user_id: str) -> Mapping[str, Any]:
        key = guild_id + user_id
        try:
            return self.cache.get("user", key)
        except KeyError:
            pass
        member = session.guild_member(guild_id, user_id)
        self.cache.set("user", key, member, USER_TTL)
        return member

    def _notify(self, session: Any, namespace: str, user_id: str, text: str) -> None:
        if (namespace, user_id) in self.cache:
            return  # do not spam the same user
        try:
            dm = session.user_channel_create(user_id)
        except Exception:
            return
        session.channel_message_send(dm["id"], text)
        self.cache.set(namespace, user_id, "", NOTIFY_TTL)

    def check_message(self, session: Any, message: Mapping[str, Any]) -> None:
        """Delete a message from an untrusted member when it breaks a rule."""
        author = message.get("author")
        if author is None:
            return  # reactions also arrive as edits
        author_id = author.get("id", "")
        channel_id = message.get("channel_id", "")
        content = message.get("content", "")
        key = content_hash(f"{channel_id}{author_id}{message.get('id', '')}{content}")
        if ("check", key) in self.cache:
            return
        self.cache.set("check", key, "true", CHECK_TTL)

        try:
            member = self._get_user(session, message.get("guild_id", ""), author_id)
        except Exception:
            return
        if is_user_safe(member):
            return

        if any(check(content) for check in _CHECKS):
            session.channel_message_delete(channel_id, message.get("id", ""))
            log.info("Removed message from %s aka %s: %s", author_id, author.get("username", ""), content)
            self._notify(session, "notify", author_id, NOTIFY_MESSAGE)

    def check_reaction(self, session: Any, reaction: Mapping[str, Any]) -> None:
        """Remove reactions of an untrusted member beyond the limit within the window."""
        user_id = reaction.get("user_id", "")
        channel_id = reaction.get("channel_id", "")
        guild_id = reaction.get("guild_id", "")
        try:
            dm = session.user_channel_create(user_id)
        except Exception as exc:
            log.warning("%s", exc)
            return
        if dm["id"] == channel_id:
            return

        try:
            member = self._get_user(session, guild_id, user_id)
        except Exception as exc:
            log.warning("Error getting user %s, %s", user_id, exc)
            return
        if is_user_safe(member):
            return

        key = guild_id + user_id
        try:
            count = int(self.cache.get("reaction", key))
        except KeyError:
            count = 0
        count += 1
        if count > REACTION_LIMIT:
            session.message_reaction_remove(
                channel_id, reaction.get("message_id", ""), _emoji_api_name(reaction.get("emoji") or {}), user_id
            )
            self._notify(session, "reactionnotify", user_id, NOTIFY_REACTION)
        self.cache.set("reaction", key, count, REACTION_TTL)

    def check_message_create(self, session: Any, message: Mapping[str, Any]) -> None:
        """Filter a new message and answer direct messages to the bot."""
        self.check_message(session, message)
        try:
            dm = session.user_channel_create(message["author"]["id"])
        except Exception:
            return
        if dm["id"] == message.get("channel_id"):
            session.channel_message_send(message.get("channel_id", ""), DM_REPLY)

    def membercount(self, session: Any, message: Mapping[str, Any]) -> None:
        """Post how many members hold each role that more than one member has."""
        author_id = message["author"]["id"]
        channel_id = message.get("channel_id", "")
        guild_id = message.get("guild_id", "")
        if not is_bot_dev(author_id):
            session.channel_message_send(channel_id, _not_sudoer(author_id))
            return

        try:
            guild = session.guild(guild_id)
        except Exception as exc:
            session.channel_message_send(channel_id, f"Error getting guild: {exc}")
            return

        members: list[Mapping[str, Any]] = []
        after = ""
        while True:
            try:
                page = session.guild_members(guild_id, after, MEMBER_PAGE_SIZE) or []
            except Exception as exc:
                session.channel_message_send(channel_id, f"Error getting member list: {exc}")
                return
            if not page:
                break
            members.extend(page)
            after = members[-1]["user"]["id"]

        try:
            roles = session.guild_roles(guild_id) or []
        except Exception:
            roles = []

        counts: dict[str, int] = {}
        for member in members:
            for role_id in member.get("roles") or []:
                counts[role_id] = counts.get(role_id, 0) + 1

        words = message.get("content", "").split()
        by_amount = len(words) > 1 and words[1].startswith("a")
        ordered = sort_roles(roles, counts, by_amount)

        member_count = guild.get("member_count", 0)
        embed = Embed().set_title("Membercount")
        embed.set_thumbnail(_icon_url(guild))
        embed.set_footer(f"Guild total {member_count}; Members counted: {len(members)}")
        embed.add_field("Total", str(member_count))

        # more than one holder filters out bot roles
        for role in ordered:
            holders = counts.get(role.get("id", ""), 0)
            if holders > 1:
                embed.add_field(role.get("name", ""), str(holders))
                if len(embed.fields) >= MAX_EMBED_FIELDS:
                    self._send_embed(session, channel_id, embed)
                    embed = Embed().set_title("Membercount")

        if embed.fields:
            self._send_embed(session, channel_id, embed)

    @staticmethod
    def _send_embed(session: Any, channel_id: str, embed: Embed) -> None:
        embed.inline_all_fields()
        try:
            session.channel_message_send_embed(channel_id, embed.to_dict())
        except Exception as exc:
            session.channel_message_send(channel_id, f"Error sending embed message: {exc}")

    def _change_mute(self, session: Any, message: Mapping[str, Any], mute: bool) -> None:
        author_id = message["author"]["id"]
        channel_id = message.get("channel_id", "")
        guild_id = message.get("guild_id", "")
        if not is_admin(author_id):
            session.channel_message_send(channel_id, _not_sudoer(author_id))
            return

        user_id = parse_mute_target(message.get("content", ""))
        if user_id is None:
            session.channel_message_send(channel_id, "You need to specify a user")
            return

        try:
            roles = session.guild_roles(guild_id) or []
        except Exception as exc:
            session.channel_message_send(channel_id, f"Error: {exc}")
            return
        muted_id = ""
        for role in roles:
            if role.get("name") == "Muted":
                muted_id = role.get("id", "")

        try:
            if mute:
                session.guild_member_role_add(guild_id, user_id, muted_id)
            else:
                session.guild_member_role_remove(guild_id, user_id, muted_id)
        except Exception as exc:
            session.channel_message_send(channel_id, f"Error: {exc}")
            return

        session.channel_message_send(channel_id, ":mute:" if mute else ":speaking_head:")

    def mute_user(self, session: Any, message: Mapping[str, Any]) -> None:
        """Give the mentioned user the Muted role."""
        self._change_mute(session, message, True)

    def unmute_user(self, session: Any, message: Mapping[str, Any]) -> None:
        """Take the Muted role from the mentioned user."""
        self._change_mute(session, message, False)

    def choochoo(self, session: Any, message: Mapping[str, Any]) -> None:
        """Quietly DM the author an invite to the channel named by ``CHOO``."""
        session.channel_message_delete(message.get("channel_id", ""), message.get("id", ""))
        target = os.environ.get("CHOO", "")
        if not target:
            return
        try:
            invite = session.channel_invite_create(target, {})
        except Exception as exc:
            log.warning("%s", exc)
            return
        try:
            dm = session.user_channel_create(message["author"]["id"])
        except Exception:
            return
        session.channel_message_send(dm["id"], invite.get("code", ""))
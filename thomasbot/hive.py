"""On-demand voice and text channels ("hives") created from request channels."""

from __future__ import annotations

import enum
import logging
from typing import Any, Mapping

from thomasbot.config import HiveConfiguration
from thomasbot.embed import Embed
from thomasbot.slash import install_slash_command

log = logging.getLogger(__name__)

EPHEMERAL = 64

INTERACTION_APPLICATION_COMMAND = 2
RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE = 4

CHANNEL_TYPE_GUILD_TEXT = 0
CHANNEL_TYPE_GUILD_VOICE = 2

OVERWRITE_ROLE = 0
OVERWRITE_MEMBER = 1

OPTION_SUB_COMMAND = 1
OPTION_SUB_COMMAND_GROUP = 2
OPTION_STRING = 3
OPTION_INTEGER = 4
OPTION_BOOLEAN = 5

COMPONENT_ACTIONS_ROW = 1
COMPONENT_BUTTON = 2
BUTTON_SUCCESS = 3


class Permission(enum.IntFlag):
    CREATE_INSTANT_INVITE = 1 << 0
    KICK_MEMBERS = 1 << 1
    BAN_MEMBERS = 1 << 2
    ADMINISTRATOR = 1 << 3
    MANAGE_CHANNELS = 1 << 4
    MANAGE_SERVER = 1 << 5
    ADD_REACTIONS = 1 << 6
    VIEW_AUDIT_LOGS = 1 << 7
    VOICE_PRIORITY_SPEAKER = 1 << 8
    VIEW_CHANNEL = 1 << 10
    SEND_MESSAGES = 1 << 11
    SEND_TTS_MESSAGES = 1 << 12
    MANAGE_MESSAGES = 1 << 13
    EMBED_LINKS = 1 << 14
    ATTACH_FILES = 1 << 15
    READ_MESSAGE_HISTORY = 1 << 16
    MENTION_EVERYONE = 1 << 17
    VOICE_CONNECT = 1 << 20
    VOICE_SPEAK = 1 << 21
    VOICE_MUTE_MEMBERS = 1 << 22
    VOICE_DEAFEN_MEMBERS = 1 << 23
    VOICE_MOVE_MEMBERS = 1 << 24
    VOICE_USE_VAD = 1 << 25
    MANAGE_ROLES = 1 << 28
    MANAGE_WEBHOOKS = 1 << 29
    MANAGE_EMOJIS = 1 << 30


_ALL_TEXT = (
    Permission.VIEW_CHANNEL
    | Permission.SEND_MESSAGES
    | Permission.SEND_TTS_MESSAGES
    | Permission.MANAGE_MESSAGES
    | Permission.EMBED_LINKS
    | Permission.ATTACH_FILES
    | Permission.READ_MESSAGE_HISTORY
    | Permission.MENTION_EVERYONE
)
_ALL_VOICE = (
    Permission.VIEW_CHANNEL
    | Permission.VOICE_CONNECT
    | Permission.VOICE_SPEAK
    | Permission.VOICE_MUTE_MEMBERS
    | Permission.VOICE_DEAFEN_MEMBERS
    | Permission.VOICE_MOVE_MEMBERS
    | Permission.VOICE_USE_VAD
    | Permission.VOICE_PRIORITY_SPEAKER
)
_ALL_CHANNEL = (
    _ALL_TEXT
    | _ALL_VOICE
    | Permission.CREATE_INSTANT_INVITE
    | Permission.MANAGE_ROLES
    | Permission.MANAGE_CHANNELS
    | Permission.ADD_REACTIONS
    | Permission.VIEW_AUDIT_LOGS
)
PERMISSION_ALL = int(
    _ALL_CHANNEL
    | Permission.KICK_MEMBERS
    | Permission.BAN_MEMBERS
    | Permission.MANAGE_SERVER
    | Permission.ADMINISTRATOR
    | Permission.MANAGE_WEBHOOKS
    | Permission.MANAGE_EMOJIS
)

DEFAULT_ALLOWS = int(
    Permission.READ_MESSAGE_HISTORY
    | Permission.VIEW_CHANNEL
    | Permission.SEND_MESSAGES
    | Permission.VOICE_CONNECT
    | Permission.ADD_REACTIONS
    | Permission.ATTACH_FILES
    | Permission.EMBED_LINKS
)

_LEAVE_APP = {"name": "leave", "description": "Leave an on-remand text channel", "options": []}
_ARCHIVE_APP = {"name": "archive", "description": "Archives an on-remand text channel", "options": []}
_HIVE_APP = {
    "name": "hive",
    "description": "creates on-remand voice and text channels",
    "options": [
        {
            "type": OPTION_SUB_COMMAND_GROUP,
            "name": "type",
            "description": "type of channel",
            "options": [
                {
                    "type": OPTION_SUB_COMMAND,
                    "name": "text",
                    "description": "text channel",
                    "required": False,
                    "options": [
                        {"type": OPTION_STRING, "name": "name", "description": "name of channel", "required": True},
                        {
                            "type": OPTION_BOOLEAN,
                            "name": "hidden",
                            "description": "is channel not visible for everyone",
                            "required": True,
                        },
                    ],
                },
                {
                    "type": OPTION_SUB_COMMAND,
                    "name": "voice",
                    "description": "voice channel",
                    "required": False,
                    "options": [
                        {"type": OPTION_STRING, "name": "name", "description": "name of channel", "required": True},
                        {
                            "type": OPTION_INTEGER,
                            "name": "size",
                            "description": "number of allowed users (1-99)",
                            "required": True,
                        },
                    ],
                },
            ],
        }
    ],
}


def _respond(session: Any, interaction: Mapping[str, Any], content: str, *, ephemeral: bool = True, **extra: Any) -> None:
    data: dict[str, Any] = {"content": content, **extra}
    if ephemeral:
        data["flags"] = EPHEMERAL
    session.interaction_respond(interaction, {"type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE, "data": data})


def _options(node: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    return list((node or {}).get("options") or [])


def _user_id(interaction: Mapping[str, Any]) -> str:
    return interaction["member"]["user"]["id"]


class HiveCommand:
    """Handlers for the hive, archive and leave commands."""

    def __init__(self, database: Any, is_bob: bool = False) -> None:
        self.database = database
        self.is_bob = is_bob

    def install_slash_commands(self, session: Any) -> None:
        if session is None:
            return
        for app in (_ARCHIVE_APP, _LEAVE_APP, _HIVE_APP):
            install_slash_command(session, "", app)

    def hive_command(self, session: Any, interaction: Mapping[str, Any]) -> None:
        """Handle ``/hive type text|voice ...``."""
        if interaction.get("type") != INTERACTION_APPLICATION_COMMAND:
            return

        groups = _options(interaction.get("data"))
        subcommands = _options(groups[0]) if groups else []
        arguments = _options(subcommands[0]) if subcommands else []
        if len(arguments) < 2:
            _respond(session, interaction, "Invalid command options")
            return

        is_text = subcommands[0].get("name") == "text"

        conf = self.precheck(session, interaction)
        if conf is None:
            return

        name = ""
        size = 0
        hidden = False
        for option in arguments:
            value = option.get("value")
            key = option.get("name")
            if key == "name":
                if not isinstance(value, str):
                    return
                name = value
            elif key == "size":
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    return
                size = int(value)
            elif key == "hidden":
                if not isinstance(value, bool):
                    return
                hidden = value

        self.create_channel(session, interaction, name, is_text, hidden, conf, size)

    def precheck(self, session: Any, interaction: Mapping[str, Any]) -> HiveConfiguration | None:
        """Return the hive for the request channel, or respond with the reason there is none."""
        if interaction.get("member") is None:
            _respond(session, interaction, "This command does not work in DMs")
            return None
        try:
            conf = self.config_for_request_channel(interaction.get("guild_id", ""), interaction.get("channel_id", ""))
        except Exception as exc:
            _respond(session, interaction, f"An error happened: {exc}")
            return None
        if conf is None:
            _respond(session, interaction, "This command only works in the Requests channels")
            return None
        return conf

    def create_channel(
        self,
        session: Any,
        interaction: Mapping[str, Any],
        name: str,
        is_text: bool,
        hidden: bool,
        conf: HiveConfiguration,
        size: int,
    ) -> None:
        try:
            if is_text:
                new_channel = self.create_text_channel(
                    session, conf, name, conf.text_category_id, interaction, hidden
                )
            else:
                new_channel = self.create_voice_channel(
                    session, conf, name, conf.voice_category_id, interaction.get("guild_id", ""), size, hidden
                )
        except Exception as exc:
            _respond(session, interaction, f"An error happened: {exc}")
            return

        channel_id = new_channel["id"]
        if not is_text:
            _respond(
                session,
                interaction,
                f"Channel <#{channel_id}> has been created!  Reminder: I will delete it when it stays empty for a while",
            )
        elif not hidden:
            _respond(session, interaction, f"Channel <#{channel_id}> has been created!")
            session.channel_message_send(
                channel_id, "Welcome to your text channel! If you're finished using this please say `/archive`"
            )
        else:
            embed = Embed().set_title("Hive Channel").add_field("name", conf.prefix + name).add_field("id", channel_id)
            _respond(
                session,
                interaction,
                "Channel has been created! Your channel is hidden, click 👋 below to join",
                embeds=[embed.to_dict()],
                components=[
                    {
                        "type": COMPONENT_ACTIONS_ROW,
                        "components": [
                            {
                                "type": COMPONENT_BUTTON,
                                "label": "Join Channel",
                                "style": BUTTON_SUCCESS,
                                "custom_id": "hive_join",
                                "emoji": {"name": "👋"},
                            }
                        ],
                    }
                ],
            )

    def create_text_channel(
        self,
        session: Any,
        conf: HiveConfiguration,
        name: str,
        category_id: str,
        interaction: Mapping[str, Any],
        hidden: bool,
    ) -> Mapping[str, Any]:
        category = session.channel(category_id)
        guild_id = interaction.get("guild_id", "")
        props: dict[str, Any] = {
            "name": conf.prefix + name,
            "type": CHANNEL_TYPE_GUILD_TEXT,
            "position": 99,
            "parent_id": category_id,
            "nsfw": False,
            "permission_overwrites": list(category.get("permission_overwrites") or []),
        }
        if hidden:
            # the creator moderates a hidden channel, everyone else is shut out
            props["permission_overwrites"] = [
                {
                    "id": _user_id(interaction),
                    "type": OVERWRITE_MEMBER,
                    "deny": 0,
                    "allow": DEFAULT_ALLOWS | Permission.MANAGE_MESSAGES,
                },
                {"id": guild_id, "type": OVERWRITE_ROLE, "deny": PERMISSION_ALL, "allow": 0},
            ]
        return session.guild_channel_create(guild_id, props)

    def recycle_voice_channel(
        self,
        session: Any,
        conf: HiveConfiguration,
        name: str,
        category_id: str,
        guild_id: str,
        limit: int,
    ) -> Mapping[str, Any] | None:
        """Move a voice channel out of the junkyard; None when there is none to reuse."""
        junk = next(
            (
                channel
                for channel in session.guild_channels(guild_id) or []
                if channel.get("parent_id") == conf.junkyard_category_id
                and channel.get("type") == CHANNEL_TYPE_GUILD_VOICE
            ),
            None,
        )
        if junk is None:
            return None

        category = session.channel(category_id)
        return session.channel_edit(
            junk["id"],
            {
                "parent_id": category_id,
                "permission_overwrites": list(category.get("permission_overwrites") or []),
                "user_limit": limit,
                "name": conf.prefix + name,
                "bitrate": conf.voice_bitrate,
            },
        )

    def create_voice_channel(
        self,
        session: Any,
        conf: HiveConfiguration,
        name: str,
        category_id: str,
        guild_id: str,
        limit: int,
        hidden: bool,
    ) -> Mapping[str, Any]:
        recycled = self.recycle_voice_channel(session, conf, name, category_id, guild_id, limit)
        if recycled is not None:
            return recycled
        return session.guild_channel_create(
            guild_id,
            {
                "name": conf.prefix + name,
                "bitrate": conf.voice_bitrate,
                "nsfw": False,
                "parent_id": category_id,
                "type": CHANNEL_TYPE_GUILD_VOICE,
                "user_limit": limit,
            },
        )

    def say_archive(self, session: Any, interaction: Mapping[str, Any]) -> None:
        """Move a hive channel into the junkyard."""
        guild_id = interaction.get("guild_id", "")
        channel_id = interaction.get("channel_id", "")
        try:
            channel = session.channel(channel_id)
        except Exception as exc:
            _respond(session, interaction, "Error getting channel info")
            log.warning("%s", exc)
            return

        try:
            conf = self.config_for_request_category(session, guild_id, channel_id)
        except Exception as exc:
            log.warning("%s", exc)
            return
        if conf is None or self.is_privileged_channel(channel["id"], conf):
            _respond(session, interaction, "This command only works in hive created channels")
            return

        if conf.prefix and not channel.get("name", "").startswith(conf.prefix):
            _respond(session, interaction, "This command only works in hive created channels with correct prefix")
            return

        try:
            junkyard = session.channel(conf.junkyard_category_id)
        except Exception as exc:
            log.warning("%s", exc)
            return
        try:
            session.channel_edit(
                channel["id"],
                {
                    "parent_id": conf.junkyard_category_id,
                    "permission_overwrites": list(junkyard.get("permission_overwrites") or []),
                },
            )
        except Exception as exc:
            log.warning("%s", exc)

        _respond(session, interaction, "Channel is archived", ephemeral=False)

    def say_leave(self, session: Any, interaction: Mapping[str, Any]) -> None:
        """Remove the caller's permission overwrite from a hive channel."""
        guild_id = interaction.get("guild_id", "")
        channel_id = interaction.get("channel_id", "")
        try:
            conf = self.config_for_request_category(session, guild_id, channel_id)
        except Exception as exc:
            _respond(session, interaction, str(exc))
            log.warning("%s", exc)
            return
        if conf is None or self.is_privileged_channel(channel_id, conf):
            _respond(
                session,
                interaction,
                "This command only works in hive created channels, consider using Discord's mute instead",
            )
            return

        try:
            channel = session.channel(channel_id)
        except Exception as exc:
            log.warning("%s", exc)
            return

        user_id = _user_id(interaction)
        remaining = [ow for ow in channel.get("permission_overwrites") or [] if ow.get("id") != user_id]
        try:
            session.channel_edit(channel["id"], {"permission_overwrites": remaining})
        except Exception as exc:
            log.warning("%s", exc)
        _respond(session, interaction, f"<@{user_id}> has left the chat", ephemeral=False)

    def config_for_request_channel(self, guild_id: str, channel_id: str) -> HiveConfiguration | None:
        """The hive whose request channels include ``channel_id``, if any."""
        conf = self.database.config_for_guild(guild_id)
        if conf is None:
            return None
        return next((hive for hive in conf.hives if channel_id in hive.request_channel_ids), None)

    def config_for_request_category(self, session: Any, guild_id: str, channel_id: str) -> HiveConfiguration | None:
        """The hive whose voice or text category holds ``channel_id``, if any."""
        conf = self.database.config_for_guild(guild_id)
        if conf is None:
            return None
        parent = session.channel(channel_id).get("parent_id")
        return next(
            (hive for hive in conf.hives if parent in (hive.voice_category_id, hive.text_category_id)),
            None,
        )

    def is_privileged_channel(self, channel_id: str, conf: HiveConfiguration) -> bool:
        """Whether the channel is the text category or a request channel of the hive."""
        if channel_id == conf.voice_category_id:
            pass
        elif channel_id == conf.text_category_id:
            return True
        return channel_id in conf.request_channel_ids
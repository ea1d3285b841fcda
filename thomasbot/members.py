"""Welcoming new members and handling role requests and their approval."""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from typing import Any, Callable, Iterable, Mapping

from thomasbot.config import RoleSet
from thomasbot.slash import install_slash_command

log = logging.getLogger(__name__)

EPHEMERAL = 64
RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE = 4
RESPONSE_DEFERRED_MESSAGE_UPDATE = 6

COMPONENT_ACTIONS_ROW = 1
COMPONENT_BUTTON = 2
COMPONENT_SELECT_MENU = 3

BUTTON_SECONDARY = 2
BUTTON_SUCCESS = 3
BUTTON_DANGER = 4

MAX_SELECT_OPTIONS = 25
WAVE_DELAY = 5 * 60
DM_DELAY = 1
ROLE_SET_DELAY = 3

_ACTION = re.compile(r"\{\{(.*?)\}\}", re.S)
_FIELD_CHAIN = re.compile(r"(\.[A-Za-z_][A-Za-z0-9_]*)+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        for key in (name, _snake(name)):
            if key in obj:
                return obj[key]
        if name == "Member":
            # the join event is itself the member
            return obj
        raise ValueError(f"can't evaluate field {name}")
    try:
        return getattr(obj, _snake(name))
    except AttributeError:
        raise ValueError(f"can't evaluate field {name}") from None


def _format(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _evaluate(action: str, data: Any) -> str:
    if action.startswith("/*") and action.endswith("*/"):
        return ""
    if action == ".":
        return _format(data)
    if not _FIELD_CHAIN.fullmatch(action):
        raise ValueError(f"unsupported template action: {action!r}")
    value = data
    for name in action[1:].split("."):
        value = _field(value, name)
    return _format(value)


def render_welcome(template: str, data: Any) -> str:
    """Fill ``{{.Field.Sub}}`` references in a welcome text from the join event."""
    out: list[str] = []
    position = 0
    trim_next = False
    for match in _ACTION.finditer(template):
        text = template[position : match.start()]
        if trim_next:
            text = text.lstrip()
        action = match.group(1)
        if action.startswith("- ") or action == "-":
            text = text.rstrip()
            action = action[1:]
        trim_next = action.endswith(" -")
        if trim_next:
            action = action[:-1]
        out.append(text)
        out.append(_evaluate(action.strip(), data))
        position = match.end()
    rest = template[position:]
    if "{{" in rest:
        raise ValueError("unclosed action in template")
    out.append(rest.lstrip() if trim_next else rest)
    return "".join(out)


def find_role(roles: Iterable[Mapping[str, Any]], role_id: str) -> Mapping[str, Any] | None:
    """The role with ``role_id``, or None."""
    return next((role for role in roles or [] if role.get("id") == role_id), None)


def has_role(member: Mapping[str, Any], role_id: str) -> bool:
    return role_id in (member.get("roles") or [])


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _respond(session: Any, interaction: Mapping[str, Any], content: str, *, ephemeral: bool = True) -> None:
    data: dict[str, Any] = {"content": content}
    if ephemeral:
        data["flags"] = EPHEMERAL
    session.interaction_respond(interaction, {"type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE, "data": data})


def _button(label: str, style: int, emoji: str, custom_id: str) -> dict[str, Any]:
    return {
        "type": COMPONENT_BUTTON,
        "label": label,
        "style": style,
        "emoji": {"name": emoji},
        "custom_id": custom_id,
    }


class MemberCommands:
    """The /role command, role approval buttons and welcome messages."""

    def __init__(self, database: Any, sleep: Callable[[float], object] = time.sleep) -> None:
        self.database = database
        self._sleep = sleep
        self.background: list[threading.Thread] = []

    def install_slash_commands(self, session: Any) -> None:
        install_slash_command(
            session,
            "",
            {"name": "role", "description": "Request a new role om this server", "options": []},
        )

    def on_guild_member_add(self, session: Any, event: Mapping[str, Any]) -> None:
        """Welcome a new member, give the default role and send the welcome DMs."""
        guild_id = event.get("guild_id", "")
        try:
            conf = self.database.config_for_guild(guild_id)
        except Exception as exc:
            log.warning("%s", exc)
            return

        if not conf.welcome_channel_id:
            return

        try:
            text = render_welcome(conf.welcome_text, event)
        except ValueError as exc:
            log.warning("%s", exc)
            return

        try:
            welcome = session.channel_message_send(conf.welcome_channel_id, text)
        except Exception as exc:
            log.warning("%s", exc)
            welcome = None
        if welcome is not None:
            # waving back is not essential; the students also like a head start
            waver = threading.Thread(
                target=self._wave, args=(session, conf.welcome_channel_id, welcome["id"]), daemon=True
            )
            self.background.append(waver)
            waver.start()

        user = event.get("user") or {}
        user_id = user.get("id", "")
        if conf.role_management.default_role:
            try:
                session.guild_member_role_add(guild_id, user_id, conf.role_management.default_role)
            except Exception as exc:
                log.warning("Cannot set role for user %s: %s", user_id, exc)

        if conf.welcome_dm:
            try:
                dm = session.user_channel_create(user_id)
            except Exception:
                log.warning("Cannot DM user %s", user_id)
                return
            session.channel_message_send(dm["id"], f"Hi {user.get('username', '')}")
            self._sleep(DM_DELAY)
            for text in conf.welcome_dm:
                session.channel_message_send(dm["id"], text)
                self._sleep(DM_DELAY)
            if conf.role_management.role_sets:
                self.send_role_dm(session, guild_id, user_id)

    def _wave(self, session: Any, channel_id: str, message_id: str) -> None:
        self._sleep(WAVE_DELAY)
        for emoji in ("👋", "💗"):
            try:
                session.message_reaction_add(channel_id, message_id, emoji)
            except Exception as exc:
                log.warning("%s", exc)

    def role_slash_command(self, session: Any, interaction: Mapping[str, Any]) -> None:
        """Handle /role by sending the role selection menus in a DM."""
        member = interaction.get("member")
        if member is None:
            _respond(session, interaction, "I cannot do this in DM, sorry", ephemeral=False)
            return
        user_id = member["user"]["id"]
        try:
            dm = session.user_channel_create(user_id)
        except Exception:
            try:
                _respond(session, interaction, "error sending a DM to you")
            except Exception as exc:
                log.warning("%s", exc)
            return

        if dm["id"] == interaction.get("channel_id"):
            try:
                _respond(
                    session,
                    interaction,
                    "I'm sorry I have no idea which server you are in, please use tm!role in a channel "
                    "in the Discord server I need to help you with.",
                )
            except Exception as exc:
                log.warning("%s", exc)
            return

        try:
            _respond(session, interaction, "I sent you a DM!")
        except Exception as exc:
            log.warning("%s", exc)

        self.send_role_dm(session, interaction.get("guild_id", ""), user_id)

    def send_role_dm(self, session: Any, guild_id: str, user_id: str) -> None:
        """Send the user one role selection menu per configured role set."""
        try:
            conf = self.database.config_for_guild(guild_id)
        except Exception:
            return
        if conf is None:
            return
        try:
            dm = session.user_channel_create(user_id)
        except Exception:
            return

        role_sets = conf.role_management.role_sets
        if not role_sets:
            session.channel_message_send(
                dm["id"], "I'm sorry this server hasn't told me any roles I am allowed to give you :("
            )
            return

        try:
            guild = session.guild(guild_id)
        except Exception as exc:
            log.warning("Guild error %s", exc)
            return

        for role_set in role_sets:
            options = []
            for wanted in role_set.roles:
                role = find_role(guild.get("roles") or [], wanted.id)
                if role is not None:
                    options.append(
                        {
                            "label": role.get("name", ""),
                            "value": role["id"],
                            "description": role.get("name", ""),
                            "emoji": {"name": wanted.emoji},
                            "default": False,
                        }
                    )
            try:
                session.channel_message_send_complex(
                    dm["id"],
                    {
                        "content": role_set.message,
                        "components": [
                            {
                                "type": COMPONENT_ACTIONS_ROW,
                                "components": [
                                    {
                                        "type": COMPONENT_SELECT_MENU,
                                        "min_values": 1,
                                        "max_values": min(len(options), MAX_SELECT_OPTIONS),
                                        "custom_id": "rolereq--" + guild_id,
                                        "placeholder": "Select the roles you want to request",
                                        "options": options,
                                    }
                                ],
                            }
                        ],
                    },
                )
            except Exception as exc:
                log.warning("%s", exc)
            self._sleep(ROLE_SET_DELAY)

    def handle_role_request(self, session: Any, interaction: Mapping[str, Any]) -> None:
        """Forward the roles picked in a selection menu to the moderators."""
        data = interaction.get("data") or {}
        parts = str(data.get("custom_id", "")).split("--")
        if len(parts) < 2:
            return
        guild_id = parts[1]
        try:
            conf = self.database.config_for_guild(guild_id)
        except Exception:
            return
        if conf is None:
            return

        user = interaction.get("user") or (interaction.get("member") or {}).get("user") or {}
        user_id = user.get("id", "")
        try:
            dm = session.user_channel_create(user_id)
        except Exception as exc:
            log.warning("Cannot DM user %s", exc)
            return

        session.interaction_respond(interaction, {"type": RESPONSE_DEFERRED_MESSAGE_UPDATE})

        try:
            member = session.guild_member(guild_id, user_id)
        except Exception as exc:
            log.warning("error looking up member %s", exc)
            return

        for value in data.get("values") or []:
            try:
                guild_roles = session.guild_roles(guild_id)
            except Exception as exc:
                log.warning("error getting guild roles %s", exc)
                return
            role = find_role(guild_roles, value)
            if role is None:
                session.channel_message_send(dm["id"], "Oh no! I cannot find that role any longer...")
                continue
            name = role.get("name", "")
            if has_role(member, value):
                session.channel_message_send(
                    dm["id"],
                    f"Oopsie! You already have the role {_quote(name)}, no worries I will not re-request it!",
                )
                continue

            session.channel_message_send(
                dm["id"], f"Thank you! I have asked our moderators for permissions to assign the role {_quote(name)}"
            )
            if name == "Docent":
                session.channel_message_send(
                    dm["id"], "Not already working at Thomas More? We're hiring! http://werkenbij.thomasmore.be/"
                )

            role_id = role["id"]
            suffix = f"{role_id}--{user_id}"
            session.channel_message_send_complex(
                conf.role_management.role_admin_channel_id,
                {
                    "content": f"<@{user_id}> wants role <@&{role_id}>",
                    "components": [
                        {
                            "type": COMPONENT_ACTIONS_ROW,
                            "components": [
                                _button("Add Role", BUTTON_SUCCESS, "➕", f"roleresponse--add--{suffix}"),
                                _button(
                                    "Replace role of type",
                                    BUTTON_SECONDARY,
                                    "🔄",
                                    f"roleresponse--replace--{suffix}",
                                ),
                                _button("Deny", BUTTON_DANGER, "❌", f"roleresponse--deny--{suffix}"),
                            ],
                        }
                    ],
                },
            )

    def handle_role_permission_response(self, session: Any, interaction: Mapping[str, Any]) -> None:
        """Apply a moderator's add, replace or deny decision on a role request."""
        session.interaction_respond(interaction, {"type": RESPONSE_DEFERRED_MESSAGE_UPDATE})

        data = interaction.get("data") or {}
        parts = str(data.get("custom_id", "")).split("--")
        if len(parts) < 4:
            return
        decision, role_id, user_id = parts[1], parts[2], parts[3]
        guild_id = interaction.get("guild_id", "")

        try:
            conf = self.database.config_for_guild(guild_id)
        except Exception:
            return
        if conf is None:
            return
        if interaction.get("channel_id") != conf.role_management.role_admin_channel_id:
            return

        try:
            dm = session.user_channel_create(user_id)
        except Exception:
            return

        try:
            guild_roles = session.guild_roles(guild_id)
        except Exception as exc:
            log.warning("error getting guild roles %s", exc)
            return
        role = find_role(guild_roles, role_id)
        if role is None:
            return

        moderator_id = interaction["member"]["user"]["id"]
        message = interaction.get("message") or {}
        message_ref = {"channel": message.get("channel_id", ""), "id": message.get("id", "")}

        if decision == "deny":
            session.channel_message_edit_complex(
                {
                    **message_ref,
                    "content": f"<@{moderator_id}> denied the request from <@{user_id}> for role <@&{role['id']}>",
                    "components": [],
                }
            )
            session.channel_message_send(
                dm["id"], f"I'm sorry, your request for role {_quote(role.get('name', ''))} has been denied."
            )
            return

        try:
            member = session.guild_member(guild_id, user_id)
        except Exception as exc:
            log.warning("error getting user %s", exc)
            return

        default_role = conf.role_management.default_role
        if default_role and has_role(member, default_role):
            session.guild_member_role_remove(guild_id, user_id, default_role)

        if decision == "replace":
            current = RoleSet()
            for role_set in conf.role_management.role_sets:
                if any(r.id == role_id for r in role_set.roles):
                    current = role_set
            for other in current.roles:
                if has_role(member, other.id):
                    session.guild_member_role_remove(guild_id, user_id, other.id)

        try:
            session.guild_member_role_add(guild_id, user_id, role_id)
        except Exception as exc:
            session.channel_message_edit_complex(
                {**message_ref, "content": f"Error assigning role {_quote(str(exc))}\n"}
            )
            log.warning("Error assigning role %s", exc)
            return

        assigned = f"<@{moderator_id}> assigned <@&{role_id}> role for <@{user_id}>"
        try:
            session.channel_message_edit_complex({**message_ref, "content": assigned})
        except Exception as exc:
            log.warning("error responding to interaction %s", exc)
            session.channel_message_send(
                interaction.get("channel_id", ""), f"{assigned} (and interaction response failed, sad)"
            )
            return

        session.channel_message_send(
            dm["id"], f"Good news! Your request for role {_quote(role.get('name', ''))} has been approved!"
        )
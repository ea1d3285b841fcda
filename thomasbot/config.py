"""Per-guild bot configuration and the stores that hold it."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from pymongo import MongoClient

COLLECTION_NAME = "configuration"


class GuildNotFoundError(LookupError):
    """Raised when a guild has no stored configuration."""

    def __init__(self, guild_id: str) -> None:
        super().__init__(f"guild not in database: {guild_id}")
        self.guild_id = guild_id


@dataclass
class Role:
    id: str = ""
    emoji: str = ""


@dataclass
class RoleSet:
    message: str = ""
    roles: list[Role] = field(default_factory=list)


@dataclass
class RoleManagementConfiguration:
    role_admin_channel_id: str = ""
    default_role: str = ""
    role_sets: list[RoleSet] = field(default_factory=list)


@dataclass
class HiveConfiguration:
    request_channel_ids: list[str] = field(default_factory=list)
    junkyard_category_id: str = ""
    text_category_id: str = ""
    voice_category_id: str = ""
    prefix: str = ""
    voice_bitrate: int = 0


@dataclass
class LookingForPlayersConfiguration:
    request_channel_ids: list[str] = field(default_factory=list)
    advertise_channel_id: str = ""
    hive_channel_id: str = ""


@dataclass
class ScheduleConfiguration:
    class_name: str = ""
    url: str = ""


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _items(data: Mapping[str, Any], key: str) -> list[Any]:
    return list(data.get(key) or [])


def _role_set(data: Mapping[str, Any]) -> RoleSet:
    return RoleSet(
        message=_text(data, "message"),
        roles=[Role(id=_text(r, "id"), emoji=_text(r, "emoji")) for r in _items(data, "roles")],
    )


def _role_management(data: Mapping[str, Any]) -> RoleManagementConfiguration:
    return RoleManagementConfiguration(
        role_admin_channel_id=_text(data, "roleAdminChannelID"),
        default_role=_text(data, "defaultRole"),
        role_sets=[_role_set(rs) for rs in _items(data, "roleSets")],
    )


def _hive(data: Mapping[str, Any]) -> HiveConfiguration:
    return HiveConfiguration(
        request_channel_ids=[str(c) for c in _items(data, "requestChannelIDs")],
        junkyard_category_id=_text(data, "junkyardCategoryID"),
        text_category_id=_text(data, "textCategoryID"),
        voice_category_id=_text(data, "voiceCategoryID"),
        prefix=_text(data, "prefix"),
        voice_bitrate=int(data.get("voiceBitrate") or 0),
    )


def _looking_for_players(data: Mapping[str, Any]) -> LookingForPlayersConfiguration:
    return LookingForPlayersConfiguration(
        request_channel_ids=[str(c) for c in _items(data, "requestChannelIDs")],
        advertise_channel_id=_text(data, "advertiseChannelID"),
        hive_channel_id=_text(data, "hiveChannelID"),
    )


def _schedule(data: Mapping[str, Any]) -> ScheduleConfiguration:
    return ScheduleConfiguration(class_name=_text(data, "className"), url=_text(data, "url"))


@dataclass
class Configuration:
    """Everything the bot knows about one guild."""

    guild_id: str = ""
    welcome_channel_id: str = ""
    welcome_text: str = ""
    welcome_dm: list[str] = field(default_factory=list)
    role_management: RoleManagementConfiguration = field(
        default_factory=RoleManagementConfiguration
    )
    hives: list[HiveConfiguration] = field(default_factory=list)
    looking_for_players: list[LookingForPlayersConfiguration] = field(default_factory=list)
    schedules: list[ScheduleConfiguration] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Configuration:
        """Build a configuration from its JSON document form; unknown keys are ignored."""
        return cls(
            guild_id=_text(data, "guildID"),
            welcome_channel_id=_text(data, "welcomeChannelID"),
            welcome_text=_text(data, "welcomeText"),
            welcome_dm=[str(m) for m in _items(data, "welcomeDM")],
            role_management=_role_management(data.get("roleManagement") or {}),
            hives=[_hive(h) for h in _items(data, "hives")],
            looking_for_players=[_looking_for_players(p) for p in _items(data, "lookingForPlayers")],
            schedules=[_schedule(s) for s in _items(data, "schedules")],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON document form of this configuration."""
        rm = self.role_management
        return {
            "guildID": self.guild_id,
            "welcomeChannelID": self.welcome_channel_id,
            "welcomeText": self.welcome_text,
            "welcomeDM": list(self.welcome_dm),
            "roleManagement": {
                "roleAdminChannelID": rm.role_admin_channel_id,
                "defaultRole": rm.default_role,
                "roleSets": [
                    {
                        "message": rs.message,
                        "roles": [{"id": r.id, "emoji": r.emoji} for r in rs.roles],
                    }
                    for rs in rm.role_sets
                ],
            },
            "hives": [
                {
                    "requestChannelIDs": list(h.request_channel_ids),
                    "junkyardCategoryID": h.junkyard_category_id,
                    "textCategoryID": h.text_category_id,
                    "voiceCategoryID": h.voice_category_id,
                    "prefix": h.prefix,
                    "voiceBitrate": h.voice_bitrate,
                }
                for h in self.hives
            ],
            "lookingForPlayers": [
                {
                    "requestChannelIDs": list(p.request_channel_ids),
                    "advertiseChannelID": p.advertise_channel_id,
                    "hiveChannelID": p.hive_channel_id,
                }
                for p in self.looking_for_players
            ],
            "schedules": [{"className": s.class_name, "url": s.url} for s in self.schedules],
        }


class LocalDatabase:
    """Configurations kept in memory, keyed by guild ID."""

    def __init__(self, configs: Mapping[str, Configuration]) -> None:
        self._configs = dict(configs)

    @classmethod
    def from_file(cls, path: str | Path) -> LocalDatabase:
        """Load a JSON object that maps guild IDs to configurations."""
        with open(path, encoding="utf-8") as handle:
            raw = json.load(handle)
        if not isinstance(raw, dict):
            raise ValueError("configuration file must hold a JSON object")
        return cls({key: Configuration.from_dict(value or {}) for key, value in raw.items()})

    def config_for_guild(self, guild_id: str) -> Configuration:
        try:
            config = self._configs[guild_id]
        except KeyError:
            raise GuildNotFoundError(guild_id) from None
        return replace(config, guild_id=guild_id)

    def get_all_configurations(self) -> list[Configuration]:
        return [replace(config, guild_id=key) for key, config in self._configs.items()]


class MongoDatabase:
    """Configurations stored in the ``configuration`` collection of a MongoDB database."""

    def __init__(self, database: Any) -> None:
        self._collection = database[COLLECTION_NAME]

    @classmethod
    def connect(cls, url: str, name: str) -> MongoDatabase:
        client = MongoClient(url)
        return cls(client[name])

    def config_for_guild(self, guild_id: str) -> Configuration:
        document = self._collection.find_one({"guildID": guild_id})
        if document is None:
            raise GuildNotFoundError(guild_id)
        return Configuration.from_dict(document)

    def get_all_configurations(self) -> list[Configuration]:
        return [Configuration.from_dict(document) for document in self._collection.find({})]
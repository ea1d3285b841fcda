"""The /image command, which answers with a picture embed."""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Mapping

from thomasbot.embed import Embed
from thomasbot.slash import install_slash_command

log = logging.getLogger(__name__)

EPHEMERAL = 64
RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE = 4
OPTION_STRING = 3

_BASE = "https://static.eyskens.me/thomas-bot/"


class ImagesCommands:
    """Builds picture embeds by name, some picked at random from a numbered series."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._images: dict[str, Callable[[Any, str], dict[str, Any] | None]] = {
            "erasmus": self._erasmus,
            "partners": self._partners,
            "loesje": self._series("Loesje", "loesje{}.png", 7),
            "geit": self._series("Geit", "geit{}.png", 4),
            "paard": self._series("Paard", "paard{}.png", 2),
            "schaap": self._series("Schaap", "schaap{}.png", 9),
            "steun": self._series("Steun", "examensteun/{:02d}.png", 40),
            "love": self._love,
        }

    def image_names(self) -> list[str]:
        return list(self._images)

    def build_embed(self, session: Any, name: str, guild_id: str) -> dict[str, Any] | None:
        """The embed for image ``name``; None when it cannot be built. Unknown names raise KeyError."""
        return self._images[name](session, guild_id)

    def slash_command(self, session: Any, interaction: Mapping[str, Any]) -> None:
        options = (interaction.get("data") or {}).get("options") or []
        key = options[0].get("value") if options else None
        embed = None
        if isinstance(key, str) and key in self._images:
            embed = self.build_embed(session, key, interaction.get("guild_id", ""))

        if embed is not None:
            response = {"type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE, "data": {"embeds": [embed]}}
        else:
            response = {
                "type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE,
                "data": {"content": "sorry I didn't find that image", "flags": EPHEMERAL},
            }
        try:
            session.interaction_respond(interaction, response)
        except Exception as exc:
            log.warning("%s", exc)

    def install_slash_commands(self, session: Any) -> None:
        choices = [{"name": name, "value": name} for name in self._images]
        install_slash_command(
            session,
            "",
            {
                "name": "image",
                "description": "Gives an image",
                "options": [
                    {
                        "type": OPTION_STRING,
                        "name": "name",
                        "description": "name of the picture",
                        "required": True,
                        "choices": choices,
                    }
                ],
            },
        )

    def _series(self, title: str, pattern: str, count: int) -> Callable[[Any, str], dict[str, Any]]:
        def build(session: Any, guild_id: str) -> dict[str, Any]:
            number = self._rng.randrange(count) + 1
            return Embed().set_title(title).set_image(_BASE + pattern.format(number)).to_dict()

        return build

    @staticmethod
    def _erasmus(session: Any, guild_id: str) -> dict[str, Any]:
        return (
            Embed()
            .set_title("Erasmus @ ITfactory")
            .set_image(_BASE + "sem_2_2020.gif")
            .set_url("https://thomasmore365.sharepoint.com/sites/james/NL/international?tmbaseCampus=Geel")
            .to_dict()
        )

    @staticmethod
    def _partners(session: Any, guild_id: str) -> dict[str, Any]:
        return (
            Embed()
            .set_title("Partners in education")
            .set_image(_BASE + "voorstelling_partners_in_education.png")
            .to_dict()
        )

    @staticmethod
    def _love(session: Any, guild_id: str) -> dict[str, Any] | None:
        try:
            guild = session.guild(guild_id)
        except Exception as exc:
            log.warning("%s", exc)
            return None
        return Embed().set_title(f"<3 {guild.get('name', '')} <3").set_image(_BASE + "love.gif").to_dict()
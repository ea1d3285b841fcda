"""Useful links, answered as text commands and through the /link slash command."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from thomasbot.slash import install_slash_command

log = logging.getLogger(__name__)

ITF_DISCORD = "687565213943332875"
RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE = 4
OPTION_STRING = 3
UNKNOWN_LINK = "I do not know that link"


class Category(enum.Enum):
    """The help category a link belongs to."""

    LINKS = "Links"
    INFODAGEN = "Infodagen"


@dataclass(frozen=True)
class LinkCommand:
    name: str
    category: Category
    description: str
    response: str
    hidden: bool = False


# Exactly 25 links: the maximum number of choices of a slash command option.
_LINKS: tuple[tuple[str, Category, str, str], ...] = (
    (
        "bot",
        Category.LINKS,
        "Link naar de git repo van deze bot",
        "Biep Boep, bekijk zeker mijn git repo https://github.com/itfactory-tm/thomas-bot",
    ),
    (
        "canvas",
        Category.LINKS,
        "Link naar Canvas",
        "Bekijk hier je leerplatform (Canvas): https://thomasmore.instructure.com/",
    ),
    (
        "centen",
        Category.INFODAGEN,
        "Link naar financiële informatie",
        "Wil je het financiële aspect van verder studeren bekijken? https://centenvoorstudenten.be/",
    ),
    (
        "discord",
        Category.INFODAGEN,
        "Link naar Discord documentatie",
        "Nog een beetje in de war over hoe Discord werkt?: https://support.discordapp.com/hc/nl",
    ),
    (
        "ects",
        Category.INFODAGEN,
        "Link naar ECTS fiches",
        "Bekijk hier de ECTS fiches van ELO-ICT: "
        "http://onderwijsaanbodkempen.thomasmore.be/2020/opleidingen/n/SC_51260633.htm & Toegepaste Informatica: "
        "http://onderwijsaanbodkempen.thomasmore.be/2020/opleidingen/n/CQ_51236221.htm \n"
        "Alle ECTS fiches http://ects.thomasmore.be/",
    ),
    (
        "emt",
        Category.INFODAGEN,
        "Link naar EMT",
        "Heeft de IT-Factory een eigen studentenvereniging? Jazeker: https://www.facebook.com/StudentenverenigingEMT",
    ),
    (
        "examen",
        Category.LINKS,
        "Link naar info over examens",
        "Alles over de examens vind je hier: "
        "https://thomasmore365.sharepoint.com/sites/s.itfactory/SitePages/Examens.aspx",
    ),
    (
        "fb",
        Category.INFODAGEN,
        "Link naar Facebook paginas",
        "Bekijk hier onze facebook pagina van Toegepaste informatica: "
        "https://www.facebook.com/ToegepasteInformatica.ThomasMoreBE & ELO-ICT: "
        "https://www.facebook.com/ElektronicaICT.ThomasMoreBE & ACS: https://www.facebook.com/ACS.ThomasMoreBE",
    ),
    (
        "icecube",
        Category.LINKS,
        "Link naar ice-cube",
        "Ice-cube, wat is dat? https://www.thomasmore.be/ice-cube",
    ),
    (
        "inschrijven",
        Category.INFODAGEN,
        "Link naar inschrijven",
        "Wil je je inschrijven? Dat kan hier! https://www.thomasmore.be/inschrijven",
    ),
    (
        "kot",
        Category.LINKS,
        "Link naar kot informatie",
        "Informatie nodig rond op kot gaan? https://www.thomasmore.be/studenten/op-kot",
    ),
    (
        "kuloket",
        Category.LINKS,
        "Link naar KUloket",
        "Kuloket raadplegen? https://kuloket.be",
    ),
    (
        "oho",
        Category.INFODAGEN,
        "Link naar OHO",
        "Werken en studeren combineren? Dat kan zeker! "
        "https://www.thomasmore.be/opleidingen/professionele-bachelor/toegepaste-informatica/"
        "toegepaste-informatica-combinatie-werken-en-studeren-oho",
    ),
    (
        "pictures",
        Category.LINKS,
        "Fotoalbum van IT Factory",
        "De Flickr-link voor IT Factory: https://www.flickr.com/photos/itfactorygeel/albums/with/72157711381764072",
    ),
    (
        "printen",
        Category.LINKS,
        "Link naar printen",
        "Meer informatie nodig over printen? "
        "https://thomasmore365.sharepoint.com/sites/s-Leercentrum/SitePages/Printen.aspx "
        "Je printkrediet opladen? https://printbeheer.thomasmore.be/",
    ),
    (
        "rooster",
        Category.LINKS,
        "Link naar lessenrooster",
        "Bekijk hier je lessenrooster: https://rooster.thomasmore.be/",
    ),
    (
        "sharepoint",
        Category.LINKS,
        "Link naar Studentenportaal",
        "Bekijk hier de 365 sharepoint van de ITFactory: "
        "https://thomasmore365.sharepoint.com/sites/s.itfactory/SitePages/Start.aspx",
    ),
    (
        "sinners",
        Category.LINKS,
        "Link naar Sinners",
        "Wat is Sinners? https://sinners.be/",
    ),
    (
        "studenten",
        Category.INFODAGEN,
        "Link naar studenten info",
        "Op zoek naar meer algemene info rondom verder studeren? https://www.thomasmore.be/studenten",
    ),
    (
        "studentenraad",
        Category.LINKS,
        "Contact opnemen met de studentenraad",
        "Wil je contact opnemen met de studentenraad? Stuur ze een mailtje via: [email]",
    ),
    (
        "stuvo",
        Category.INFODAGEN,
        "Link naar Stuvo",
        "Heb je nood aan een goed gesprek? Neem dan zeker contact op met Stuvo: "
        "https://thomasmore365.sharepoint.com/sites/s-Studentenvoorzieningen",
    ),
    (
        "template",
        Category.LINKS,
        "Link naar TM huisstijl templates",
        "Hier vind je de TM huisstijl templates: https://static.eyskens.me/tm-template/ppt-new.pptx, "
        "https://static.eyskens.me/tm-template/ppt-old.pptx, https://static.eyskens.me/tm-template/word-nl.docx, "
        "https://static.eyskens.me/tm-template/word-en.docx",
    ),
    (
        "twitch",
        Category.LINKS,
        "Link naar ITF Twitch kanaal",
        "Af en toe livestreamen we wat games op ons Twitch kanaal: https://www.twitch.tv/itfactorygaming",
    ),
    (
        "wallet",
        Category.LINKS,
        "Link naar wallet",
        "Hoeveel staat er nog op mijn studentenkaart? https://thomasmore.mynetpay.be/",
    ),
    (
        "website",
        Category.INFODAGEN,
        "Link naar Thomas More website",
        "Bezoek onze website: https://thomasmore.be/opleidingen/professionele-bachelor/it-factory",
    ),
)


class LinkCommands:
    """A fixed set of named links, each answered with a canned reply."""

    def __init__(self) -> None:
        self.commands: list[LinkCommand] = [
            LinkCommand(name, category, description, response)
            for name, category, description, response in _LINKS
        ]
        self._responses = {command.name: command.response for command in self.commands}

    def reply_for(self, name: str) -> str:
        """The reply for link ``name``, or a notice that the link is unknown."""
        return self._responses.get(name, UNKNOWN_LINK)

    def respond(self, session: Any, message: Mapping[str, Any], name: str) -> None:
        """Answer a text command for link ``name``; unknown names raise KeyError."""
        session.channel_message_send(message.get("channel_id", ""), self._responses[name])

    def slash_command(self, session: Any, interaction: Mapping[str, Any]) -> None:
        options = (interaction.get("data") or {}).get("options") or []
        key = options[0].get("value") if options else None
        reply = self.reply_for(key) if isinstance(key, str) else UNKNOWN_LINK
        try:
            session.interaction_respond(
                interaction,
                {"type": RESPONSE_CHANNEL_MESSAGE_WITH_SOURCE, "data": {"content": reply}},
            )
        except Exception as exc:
            log.warning("%s", exc)

    def install_slash_commands(self, session: Any) -> None:
        choices = [{"name": command.name, "value": command.name} for command in self.commands]
        install_slash_command(
            session,
            ITF_DISCORD,
            {
                "name": "link",
                "description": "Gives a useful link",
                "options": [
                    {
                        "type": OPTION_STRING,
                        "name": "name",
                        "description": "name of the link",
                        "required": True,
                        "choices": choices,
                    }
                ],
            },
        )
"""A chainable builder for Discord message embeds."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

EMBED_LIMIT_TITLE = 256
EMBED_LIMIT_DESCRIPTION = 2048
EMBED_LIMIT_FIELD_VALUE = 1024
EMBED_LIMIT_FIELD_NAME = 256
EMBED_LIMIT_FIELD = 25
EMBED_LIMIT_FOOTER = 2048
EMBED_LIMIT = 4000

_ADD_FIELD_NAME_LIMIT = 1024


@dataclass
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass
class EmbedFooter:
    text: str = ""
    icon_url: str = ""
    proxy_icon_url: str = ""


@dataclass
class EmbedImage:
    url: str = ""
    proxy_url: str = ""


@dataclass
class EmbedVideo:
    url: str = ""


@dataclass
class EmbedThumbnail:
    url: str = ""
    proxy_url: str = ""


@dataclass
class EmbedAuthor:
    name: str = ""
    icon_url: str = ""
    url: str = ""
    proxy_icon_url: str = ""


def _compact(part: Any) -> dict[str, Any]:
    return {key: value for key, value in asdict(part).items() if value}


@dataclass
class Embed:
    """A message embed; every setter returns the embed so calls can be chained."""

    title: str = ""
    description: str = ""
    url: str = ""
    color: int = 0
    fields: list[EmbedField] = field(default_factory=list)
    footer: EmbedFooter | None = None
    image: EmbedImage | None = None
    video: EmbedVideo | None = None
    thumbnail: EmbedThumbnail | None = None
    author: EmbedAuthor | None = None

    def set_title(self, name: str) -> Embed:
        self.title = name
        return self

    def set_description(self, description: str) -> Embed:
        self.description = description[:EMBED_LIMIT_DESCRIPTION]
        return self

    def add_field(self, name: str, value: str) -> Embed:
        self.fields.append(
            EmbedField(name=name[:_ADD_FIELD_NAME_LIMIT], value=value[:EMBED_LIMIT_FIELD_VALUE])
        )
        return self

    def set_footer(self, *args: str) -> Embed:
        """Set the footer from (text, icon_url, proxy_icon_url); no arguments leaves it as is."""
        if not args:
            return self
        text, icon_url, proxy_icon_url = (list(args[:3]) + ["", ""])[:3]
        self.footer = EmbedFooter(text=text, icon_url=icon_url, proxy_icon_url=proxy_icon_url)
        return self

    def set_image(self, *args: str) -> Embed:
        """Set the image from (url, proxy_url)."""
        if not args:
            return self
        url, proxy_url = (list(args[:2]) + [""])[:2]
        self.image = EmbedImage(url=url, proxy_url=proxy_url)
        return self

    def set_video(self, *args: str) -> Embed:
        """Set the video from (url,)."""
        if not args:
            return self
        self.video = EmbedVideo(url=args[0])
        return self

    def set_thumbnail(self, *args: str) -> Embed:
        """Set the thumbnail from (url, proxy_url)."""
        if not args:
            return self
        url, proxy_url = (list(args[:2]) + [""])[:2]
        self.thumbnail = EmbedThumbnail(url=url, proxy_url=proxy_url)
        return self

    def set_author(self, *args: str) -> Embed:
        """Set the author from (name, icon_url, url, proxy_icon_url)."""
        if not args:
            return self
        name, icon_url, url, proxy_icon_url = (list(args[:4]) + ["", "", ""])[:4]
        self.author = EmbedAuthor(
            name=name, icon_url=icon_url, url=url, proxy_icon_url=proxy_icon_url
        )
        return self

    def set_url(self, url: str) -> Embed:
        self.url = url
        return self

    def set_color(self, color: int) -> Embed:
        self.color = color
        return self

    def inline_all_fields(self) -> Embed:
        for embed_field in self.fields:
            embed_field.inline = True
        return self

    def truncate(self) -> Embed:
        """Cut every part of the embed down to Discord's limits."""
        return self.truncate_description().truncate_fields().truncate_footer().truncate_title()

    def truncate_fields(self) -> Embed:
        del self.fields[EMBED_LIMIT_FIELD:]
        for embed_field in self.fields:
            embed_field.name = embed_field.name[:EMBED_LIMIT_FIELD_NAME]
            embed_field.value = embed_field.value[:EMBED_LIMIT_FIELD_VALUE]
        return self

    def truncate_description(self) -> Embed:
        self.description = self.description[:EMBED_LIMIT_DESCRIPTION]
        return self

    def truncate_title(self) -> Embed:
        self.title = self.title[:EMBED_LIMIT_TITLE]
        return self

    def truncate_footer(self) -> Embed:
        if self.footer is not None:
            self.footer.text = self.footer.text[:EMBED_LIMIT_FOOTER]
        return self

    def to_dict(self) -> dict[str, Any]:
        """Return the embed in Discord's wire form, leaving out empty parts."""
        result: dict[str, Any] = {}
        for key in ("title", "description", "url", "color"):
            value = getattr(self, key)
            if value:
                result[key] = value
        if self.fields:
            result["fields"] = [
                {"name": f.name, "value": f.value, **({"inline": True} if f.inline else {})}
                for f in self.fields
            ]
        for key in ("footer", "image", "video", "thumbnail", "author"):
            part = getattr(self, key)
            if part is not None:
                result[key] = _compact(part)
        return result
"""Command handlers, guild configuration, embeds and helpers for a campus Discord bot."""

__version__ = "1.0.0"
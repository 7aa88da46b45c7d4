"""IRC server core: clients, channels, command dispatch and a moderation bot."""

__version__ = "1.0.0"
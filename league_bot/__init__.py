"""Discord bot for a head-to-head Elo ranking league."""

__version__ = "1.0.0"

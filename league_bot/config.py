import os
from typing import Optional

import pytz
from dotenv import load_dotenv

load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, '').strip()
    return int(value) if value else None


class Config:
    """Bot configuration settings"""

    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    DISCORD_GUILD_ID = int(os.getenv('DISCORD_GUILD_ID', 0))
    DISCORD_GUILD_IDS = os.getenv('DISCORD_GUILD_IDS', '')  # Comma-separated for multi-guild support
    OWNER_DISCORD_ID = int(os.getenv('OWNER_DISCORD_ID', 0))

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///league.db')
    STORE_MAX_RETRIES = int(os.getenv('STORE_MAX_RETRIES', 3))

    # Bot settings
    COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # Rating settings
    STARTING_RATING = int(os.getenv('STARTING_RATING', 1500))  # Only used for the first registrant
    K_FACTOR = int(os.getenv('K_FACTOR', 50))
    BONUS_POINTS = int(os.getenv('BONUS_POINTS', 5))  # Added to both players of every confirmed match
    WEEKLY_CHALLENGE_LIMIT = int(os.getenv('WEEKLY_CHALLENGE_LIMIT', 6))
    PROVISIONAL_MATCH_COUNT = int(os.getenv('PROVISIONAL_MATCH_COUNT', 6))

    # Inactivity settings
    DECAY_ENABLED = os.getenv('DECAY_ENABLED', 'True').lower() == 'true'
    DECAY_AMOUNT = int(os.getenv('DECAY_AMOUNT', 25))
    RATING_FLOOR = _optional_int('RATING_FLOOR')
    AUTO_QUIT_ENABLED = os.getenv('AUTO_QUIT_ENABLED', 'True').lower() == 'true'
    AUTO_QUIT_WEEKS = int(os.getenv('AUTO_QUIT_WEEKS', 4))
    AUTO_QUIT_RESET_TO_AVERAGE = os.getenv('AUTO_QUIT_RESET_TO_AVERAGE', 'False').lower() == 'true'

    # Leaderboard settings
    TOP_PLAYERS_DEFAULT = int(os.getenv('TOP_PLAYERS_DEFAULT', 25))
    NEARBY_PLAYERS_DEFAULT = int(os.getenv('NEARBY_PLAYERS_DEFAULT', 2))

    # Weekly boundary (weekday 0 = Monday)
    MAINTENANCE_WEEKDAY = int(os.getenv('MAINTENANCE_WEEKDAY', 0))
    MAINTENANCE_HOUR = int(os.getenv('MAINTENANCE_HOUR', 0))
    MAINTENANCE_TIMEZONE = os.getenv('MAINTENANCE_TIMEZONE', 'UTC')

    @classmethod
    def get_guild_ids(cls):
        """Get list of guild IDs for command syncing"""
        if cls.DISCORD_GUILD_IDS:
            try:
                return [int(guild_id.strip()) for guild_id in cls.DISCORD_GUILD_IDS.split(',') if guild_id.strip()]
            except ValueError:
                raise ValueError("DISCORD_GUILD_IDS must be comma-separated integers")
        elif cls.DISCORD_GUILD_ID:
            return [cls.DISCORD_GUILD_ID]
        else:
            # Global sync
            return []

    @classmethod
    def validate_league_settings(cls):
        """Validate rating and maintenance settings (no Discord settings required)"""
        if cls.K_FACTOR <= 0:
            raise ValueError("K_FACTOR must be positive")
        if cls.WEEKLY_CHALLENGE_LIMIT <= 0:
            raise ValueError("WEEKLY_CHALLENGE_LIMIT must be positive")
        if cls.PROVISIONAL_MATCH_COUNT < 0:
            raise ValueError("PROVISIONAL_MATCH_COUNT cannot be negative")
        if cls.DECAY_AMOUNT < 0:
            raise ValueError("DECAY_AMOUNT cannot be negative")
        if cls.AUTO_QUIT_WEEKS <= 0:
            raise ValueError("AUTO_QUIT_WEEKS must be positive")
        if not 0 <= cls.MAINTENANCE_WEEKDAY <= 6:
            raise ValueError("MAINTENANCE_WEEKDAY must be between 0 (Monday) and 6 (Sunday)")
        if not 0 <= cls.MAINTENANCE_HOUR <= 23:
            raise ValueError("MAINTENANCE_HOUR must be between 0 and 23")
        try:
            pytz.timezone(cls.MAINTENANCE_TIMEZONE)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown MAINTENANCE_TIMEZONE: {cls.MAINTENANCE_TIMEZONE}")

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not cls.DISCORD_GUILD_ID and not cls.DISCORD_GUILD_IDS:
            raise ValueError("Either DISCORD_GUILD_ID or DISCORD_GUILD_IDS is required")
        if not cls.OWNER_DISCORD_ID:
            raise ValueError("OWNER_DISCORD_ID is required")
        cls.validate_league_settings()

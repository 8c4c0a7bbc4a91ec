"""
Runtime configuration for the hold'em table service.

Values come from the environment, optionally seeded from a ``.env`` file.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass
class Config:
    host: str = 'localhost'
    port: int = 8080
    db_path: str = 'holdem_data.db'
    small_blind: int = 10
    big_blind: int = 20
    starting_chips: int = 1000
    num_players: int = 6
    bot_delay: float = 0.0  # seconds a bot "thinks" before acting
    bot_simulations: int = 200
    server_env: str = 'Development'
    server_name: str = "Hold'em Table Server"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'Config':
        """Build a Config from ``HOLDEM_*`` environment variables.

        Variables already set in the environment win over the ``.env`` file.
        """
        load_dotenv(env_file)
        defaults = cls()
        return cls(
            host=os.getenv('HOLDEM_HOST', defaults.host),
            port=_env_int('HOLDEM_PORT', defaults.port),
            db_path=os.getenv('HOLDEM_DB_PATH', defaults.db_path),
            small_blind=_env_int('HOLDEM_SMALL_BLIND', defaults.small_blind),
            big_blind=_env_int('HOLDEM_BIG_BLIND', defaults.big_blind),
            starting_chips=_env_int('HOLDEM_STARTING_CHIPS', defaults.starting_chips),
            num_players=_env_int('HOLDEM_NUM_PLAYERS', defaults.num_players),
            bot_delay=_env_float('HOLDEM_BOT_DELAY', defaults.bot_delay),
            bot_simulations=_env_int('HOLDEM_BOT_SIMULATIONS', defaults.bot_simulations),
            server_env=os.getenv('SERVER_ENV', defaults.server_env),
            server_name=os.getenv('SERVER_NAME', defaults.server_name),
        )

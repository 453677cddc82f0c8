"""
govlens Constants

Deployment settings read from ``.env`` (with built-in fallbacks) and the
Compound governance defaults used when config.toml leaves a value out.
"""
from dotenv import dotenv_values

_env = dotenv_values(".env")


def _setting(key: str, default: str) -> str:
    value = _env.get(key)
    return default if value is None or not value.strip() else value.strip()


def _flag(key: str, default: bool) -> bool:
    value = _env.get(key)
    if value is None or not value.strip():
        return default
    return value.strip().casefold() in {"1", "true", "yes", "on"}


# =============================================================================
# SERVICE
# =============================================================================
GOVLENS_NETWORK = _setting('GOVLENS_NETWORK', 'mainnet')
GOVLENS_RPC_URL = _setting('GOVLENS_RPC_URL', 'http://127.0.0.1:8545')
GOVLENS_TIMESTAMP_URL = _setting('GOVLENS_TIMESTAMP_URL', 'https://timestamp.compound.finance')
GOVLENS_SERVICE_HOST = _setting('GOVLENS_SERVICE_HOST', '127.0.0.1')
GOVLENS_SERVICE_PORT = _setting('GOVLENS_SERVICE_PORT', '3010')
GOVLENS_CONFIG_PATH = _setting('GOVLENS_CONFIG_PATH', 'config.toml')

CONNECTION_TIMEOUT = 30.0  # seconds, every outgoing HTTP request


# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = _setting('LOG_LEVEL', 'INFO')
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'
LOG_CONSOLE_HIGHLIGHTING = _flag('LOG_CONSOLE_HIGHLIGHTING', True)
LOG_FILE_OUTPUT = _flag('LOG_FILE_OUTPUT', False)

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_MAX_PATH_LENGTH = 320  # longer URLs are truncated in request logs
LOG_BACKUP_COUNT = 5


# =============================================================================
# GOVERNANCE DEFAULTS (Compound mainnet)
# =============================================================================
DEFAULT_QUORUM_VOTES = 400_000 * 10 ** 18
DEFAULT_SECONDS_PER_BLOCK = 86400.0 / 6570.0  # ~6570 blocks per day
TIMELOCK_DELAY_SECONDS = 172800  # 2 days
TIMELOCK_GRACE_PERIOD_SECONDS = 1209600  # 14 days
TIMELOCK_ETA_PADDING_SECONDS = 90  # head room for mining time when queueing

DEFAULT_TOKEN_DECIMALS = 18
UNTITLED_PROPOSAL = 'Untitled'

SUPPORT_AGAINST = 0
SUPPORT_FOR = 1
SUPPORT_ABSTAIN = 2

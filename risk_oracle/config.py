# risk_oracle/config.py
import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes", "on")


class BaseConfig:
    # --- DB ---
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "postgresql+psycopg2://app_user:app_pass@db:5432/app_db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # --- Scan queue ---
    SCAN_COOLDOWN_SECONDS = int(os.environ.get("SCAN_COOLDOWN_SECONDS", 24 * 60 * 60))
    SCAN_MIN_INTERVAL_SECONDS = float(os.environ.get("SCAN_MIN_INTERVAL_SECONDS", 12))
    SCAN_MAX_PENDING = int(os.environ.get("SCAN_MAX_PENDING", 10))
    SCAN_HISTORY_LIMIT = int(os.environ.get("SCAN_HISTORY_LIMIT", 50))
    SCAN_COOLDOWN_ON_FAILURE = _env_bool("SCAN_COOLDOWN_ON_FAILURE")

    # --- Source explorer ---
    BSCSCAN_API_KEY = os.environ.get("BSCSCAN_API_KEY", "")
    ETHERSCAN_V2_BASE = os.environ.get("ETHERSCAN_V2_BASE", "https://api.etherscan.io/v2/api")
    SCAN_CHAIN_ID = os.environ.get("SCAN_CHAIN_ID", "56")

    # --- LLM ---
    SKIP_LLM = _env_bool("SKIP_LLM")
    LLM_MODEL = os.environ.get("LLM_MODEL", "claude-sonnet-4-5-20250929")
    LLM_MAX_TOKENS = int(os.environ.get("LLM_MAX_TOKENS", 4096))

    # --- IPFS (Pinata) ---
    PINATA_API_KEY = os.environ.get("PINATA_API_KEY", "")
    PINATA_SECRET = os.environ.get("PINATA_SECRET", "")

    # --- On-chain oracle ---
    ORACLE_ADDRESS = os.environ.get("ORACLE_ADDRESS", "")
    AGENT_PRIVATE_KEY = os.environ.get("AGENT_PRIVATE_KEY", "")
    BSC_RPC_URL = os.environ.get("BSC_RPC_URL", "https://bsc-dataseed1.binance.org")
    WEB3_USE_POA = _env_bool("WEB3_USE_POA", "true")
    SKIP_ONCHAIN = _env_bool("SKIP_ONCHAIN")
    ORACLE_LISTENER_ENABLED = _env_bool("ORACLE_LISTENER_ENABLED", "true")
    ORACLE_POLL_SECONDS = float(os.environ.get("ORACLE_POLL_SECONDS", 15))

    # --- Batch scanner ---
    BATCH_PAUSE_SECONDS = float(os.environ.get("BATCH_PAUSE_SECONDS", 1.5))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV = "development"


class ProductionConfig(BaseConfig):
    DEBUG = False
    ENV = "production"


class TestingConfig(BaseConfig):
    TESTING = True
    ENV = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SKIP_LLM = True
    SKIP_ONCHAIN = True
    ORACLE_LISTENER_ENABLED = False
    PINATA_API_KEY = ""
    PINATA_SECRET = ""
    BATCH_PAUSE_SECONDS = 0

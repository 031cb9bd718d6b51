import os
from dotenv import load_dotenv

# Load Environment Variables from project root .env
env_path = os.path.join(os.path.dirname(__file__), "../.env")
load_dotenv(env_path)


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # ═══════════════════════════════════════════════════════════════════
    # SOLCLAIMER CONFIGURATION (env-backed)
    # ═══════════════════════════════════════════════════════════════════

    # --- Console ---
    SILENT_MODE = _flag("SILENT_MODE")

    # Paths
    ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    DATA_DIR = os.getenv("DATA_DIR", os.path.join(ROOT_DIR, "data"))
    LOG_DIR = os.getenv("LOG_DIR", os.path.join(ROOT_DIR, "logs"))

    # --- RPC ---
    RPC_URL = os.getenv("RPC_URL", "https://api.mainnet-beta.solana.com")
    RPC_FALLBACK_URLS = [
        u.strip() for u in os.getenv("RPC_FALLBACK_URLS", "").split(",") if u.strip()
    ]

    # --- Wallet ---
    SOLANA_PRIVATE_KEY = os.getenv("SOLANA_PRIVATE_KEY", "")

    # --- Stats Store ---
    STATS_BACKEND = os.getenv("STATS_BACKEND", "json")  # json | sqlite | http
    STATS_FILE = os.getenv("STATS_FILE", os.path.join(DATA_DIR, "ata_stats.json"))
    STATS_DB_PATH = os.getenv("STATS_DB_PATH", os.path.join(DATA_DIR, "solclaimer.db"))
    STATS_API_URL = os.getenv("STATS_API_URL", "http://localhost:8000")

    # --- Metadata / Links ---
    IPFS_GATEWAY = os.getenv("IPFS_GATEWAY", "https://ipfs.io/ipfs/")
    EXPLORER_TX_URL = os.getenv("EXPLORER_TX_URL", "https://explorer.solana.com/tx/")

    @staticmethod
    def rpc_urls() -> list:
        """Primary RPC first, then fallbacks (deduplicated)."""
        urls = [Settings.RPC_URL] + Settings.RPC_FALLBACK_URLS
        return list(dict.fromkeys([u for u in urls if u]))

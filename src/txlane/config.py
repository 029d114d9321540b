import os
import tomllib
from pathlib import Path

pkg_root = Path(__file__).parent
config_file = Path(os.getenv("TXLANE_CONFIG", pkg_root / "config.toml"))


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config(path: Path = config_file) -> dict:
    cfg = tomllib.loads(Path(path).read_text())
    cfg["ledger"]["rpc_url"] = os.getenv("RPC_URL", cfg["ledger"]["rpc_url"])
    cfg["ledger"]["network"] = os.getenv("NETWORK_NAME", cfg["ledger"]["network"])
    cfg["account"]["seed"] = os.getenv("ACCOUNT_SEED", cfg["account"].get("seed", ""))
    if "TXLANE_DEBUG" in os.environ:
        cfg["activity"]["debug"] = _truthy(os.environ["TXLANE_DEBUG"])
    return cfg


cfg = load_config()

"""
Script configuration - baked-in defaults, optional JSON file, env overrides
"""
import json
import logging
import os
import platform
from pathlib import Path

logger = logging.getLogger(__name__)

# ── CONFIG (baked in at packaging time) ─────────────────────
VPN_ORGANIZATION = "FLEET_VPN_ORG"
VPN_DOWNLOAD_URL = "https://1111-releases.cloudflareclient.com/win/latest"

DEFAULTS = {
    "debug": False,
    "log_file": "",
    # Linux
    "action": "browser",
    "browser": "firefox",
    "url": "https://www.fleetdm.com",
    "command": "",
    "notify_title": "FleetDM",
    "notify_message": "System check complete",
    "notify_urgency": "normal",
    "process_scan_limit": 4096,
    # Windows
    "vpn_download_url": VPN_DOWNLOAD_URL,
    "vpn_organization": VPN_ORGANIZATION,
    "vpn_installer_name": "Cloudflare_WARP.msi",
    "vpn_config_path": r"C:\ProgramData\Cloudflare\mdm.xml",
    "vpn_settle_seconds": 10,
    "download_timeout": 120,
    # Extra MSI properties, e.g. {"service_mode": "warp"}
    "vpn_extra_properties": {},
}

ENV_PREFIX = "FLEET_"
CONFIG_ENV = "FLEET_AGENT_CONFIG"


def default_config_path():
    """Location of the optional JSON config file"""
    if os.getenv(CONFIG_ENV):
        return Path(os.environ[CONFIG_ENV])
    if platform.system() == "Windows":
        return Path(os.getenv("PROGRAMDATA", "C:/ProgramData")) / "FleetAgent" / "config.json"
    return Path("/etc/fleet-agent/config.json")


def _coerce(key, value):
    """Convert an override to the type of the default"""
    default = DEFAULTS[key]
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        if isinstance(value, bool):
            raise TypeError(f"expected an integer, got {value!r}")
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"expected an integer, got {value!r}")
            return int(value)
        return int(value)
    if isinstance(default, dict):
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, dict):
            raise TypeError(f"expected an object, got {value!r}")
        return {str(k): str(v) for k, v in value.items()}
    return str(value)


def load_config(path=None, environ=None):
    """
    Build the effective configuration.
    Later sources win: defaults, JSON file, FLEET_* environment variables.
    """
    config = dict(DEFAULTS)
    environ = os.environ if environ is None else environ
    path = Path(path) if path else default_config_path()

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable config file {path}: {e}")
            data = {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {path}: top level is not an object")
            data = {}
        for key, value in data.items():
            if key not in DEFAULTS:
                logger.warning(f"Unknown config key '{key}' in {path}")
                continue
            try:
                config[key] = _coerce(key, value)
            except (TypeError, ValueError):
                logger.warning(f"Invalid value for '{key}' in {path}: {value!r}")

    for key in DEFAULTS:
        env_key = ENV_PREFIX + key.upper()
        if env_key in environ:
            try:
                config[key] = _coerce(key, environ[env_key])
            except (TypeError, ValueError):
                logger.warning(f"Invalid value for {env_key}: {environ[env_key]!r}")

    return config

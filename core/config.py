# ================================================================
# File     : config.py
# Purpose  : Configuration management for TenantTrail
# Notes    : Creates ~/.tenanttrail/config.json on first run, then
#            layers environment variables and CLI flags on top
# ================================================================

import copy
import pathlib
from typing import Dict

from core.utils import fncPrintMessage, fncEnsureFolder, fncReadJSON, fncWriteJSON, fncLoadEnv

DEFAULT_LOOKBACK_DAYS = 30
DEFAULT_SAMPLE_SIZE = 5

CLOUD_ENDPOINTS = {
    "commercial": {
        "authority": "https://login.microsoftonline.com",
        "graph": "https://graph.microsoft.com",
        "loganalytics": "https://api.loganalytics.io",
    },
    "usgov": {
        "authority": "https://login.microsoftonline.us",
        "graph": "https://graph.microsoft.us",
        "loganalytics": "https://api.loganalytics.us",
    },
}


def _default_path() -> pathlib.Path:
    return pathlib.Path.home() / ".tenanttrail" / "config.json"


# ================================================================
# Function: fncDefaultConfig
# Purpose : Return a default configuration dictionary
# Notes   : Called when config file does not exist
# ================================================================
def fncDefaultConfig() -> dict:
    return {
        "version": "1.0",
        "debug": False,
        "defaults": {
            "lookback_days": DEFAULT_LOOKBACK_DAYS,
            "sample_size": DEFAULT_SAMPLE_SIZE,
        },
        "providers": {
            "entra": {
                "tenant_id": "",
                "client_id": "",
                "client_secret": "",
                "cloud": "commercial",
            },
            "loganalytics": {
                "workspace_id": "",
            },
        },
    }


# ================================================================
# Function: fncInitConfig
# Purpose : Create or load configuration file
# Notes   : Ensures base folder exists; returns full config dict
# ================================================================
def fncInitConfig(config_path: str = None) -> dict:
    path = pathlib.Path(config_path or _default_path())
    fncEnsureFolder(path.parent)

    if not path.exists():
        fncPrintMessage(f"No config found at {path}. Creating default...", "warn")
        fncWriteJSON(str(path), fncDefaultConfig())
    return fncLoadConfig(str(path))


# ================================================================
# Function: fncLoadConfig
# Purpose : Load configuration file and apply environment overrides
# Notes   : Missing keys are back-filled from the defaults so older
#           config files keep working
# ================================================================
def fncLoadConfig(config_path: str) -> dict:
    cfg = _merge(fncDefaultConfig(), fncReadJSON(config_path))

    entra = cfg["providers"]["entra"]
    la = cfg["providers"]["loganalytics"]
    entra["tenant_id"] = fncLoadEnv("TENANTTRAIL_TENANT_ID", entra.get("tenant_id"))
    entra["client_id"] = fncLoadEnv("TENANTTRAIL_CLIENT_ID", entra.get("client_id"))
    entra["client_secret"] = fncLoadEnv("TENANTTRAIL_CLIENT_SECRET", entra.get("client_secret"))
    entra["cloud"] = fncLoadEnv("TENANTTRAIL_CLOUD", entra.get("cloud"))
    la["workspace_id"] = fncLoadEnv("TENANTTRAIL_WORKSPACE_ID", la.get("workspace_id"))

    fncPrintMessage(f"Loaded configuration from {config_path}", "debug")
    return cfg


def _merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for key, val in (override or {}).items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], val)
        else:
            out[key] = val
    return out


# ================================================================
# Function: fncGetProviderConfig
# Purpose : Section of the config for one provider (entra, loganalytics)
# Notes   : Unknown providers warn and yield an empty dict
# ================================================================
def fncGetProviderConfig(cfg: dict, provider: str) -> dict:
    providers = cfg.get("providers", {})
    if provider not in providers:
        fncPrintMessage(f"Provider not found in config: {provider}", "warn")
        return {}
    return providers[provider]


# ================================================================
# Function: fncCloudEndpoints
# Purpose : Resolve authority / Graph / Log Analytics hosts for a cloud
# Notes   : Unknown cloud names fall back to commercial with a warning
# ================================================================
def fncCloudEndpoints(cloud: str) -> Dict[str, str]:
    key = (cloud or "commercial").strip().lower()
    if key not in CLOUD_ENDPOINTS:
        fncPrintMessage(f"Unknown cloud '{cloud}', using commercial endpoints.", "warn")
        key = "commercial"
    return CLOUD_ENDPOINTS[key]


# ================================================================
# Function: fncApplyCliOverrides
# Purpose : Apply command-line flags to the loaded config
# Notes   : --debug and --days; --days is validated later per source
# ================================================================
def fncApplyCliOverrides(cfg: dict, args) -> dict:
    if getattr(args, "debug", False):
        cfg["debug"] = True
    if getattr(args, "days", None) is not None:
        cfg["defaults"]["lookback_days"] = int(args.days)
    return cfg


def fncIsDebug(cfg: dict) -> bool:
    return bool(cfg.get("debug", False))

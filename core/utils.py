# ================================================================
# File     : utils.py
# Purpose  : Common helpers for TenantTrail (console, files, tables)
# Notes    : Every scan prints through fncPrintMessage
# ================================================================

import os
import json
import csv
import uuid
import random
import pathlib
from typing import Any, Dict, Iterable, List, Optional

from colorama import Fore, Style, init as _colorama_init
from tabulate import tabulate

_colorama_init(autoreset=True)

DEBUG_ENABLED = False


# ================================================================
# Function: fncSetDebug
# Purpose : Globally enable/disable debug output
# Notes   : Called from main once config + --debug are merged
# ================================================================
def fncSetDebug(enabled: bool) -> None:
    global DEBUG_ENABLED
    DEBUG_ENABLED = bool(enabled)


# ================================================================
# Function: fncPrintMessage
# Purpose : Standardised console output with levels and colours
# Notes   : Levels: info, warn, error, success, debug
# ================================================================
def fncPrintMessage(message: str, level: str = "info") -> None:
    if level == "debug" and not DEBUG_ENABLED:
        return
    colours = {
        "info": Fore.CYAN,
        "warn": Fore.YELLOW,
        "error": Fore.RED,
        "success": Fore.GREEN,
        "debug": Fore.MAGENTA,
    }
    prefix = {
        "info": "[•]",
        "warn": "[!]",
        "error": "[✗]",
        "success": "[✓]",
        "debug": "[∆]",
    }
    print(f"{colours.get(level, '')}{prefix.get(level, '[ ]')} {message}{Style.RESET_ALL}")


# ================================================================
# Function: fncDisplayBanner
# Purpose : Print the TenantTrail banner
# Notes   : Two-tone; skipped with --no-banner
# ================================================================
def fncDisplayBanner(version: str = "v1.0") -> None:
    banner_lines = [
        " _____                       _   _____           _ _ ",
        "|_   _|__ _ __   __ _ _ __ | |_|_   _| __ __ _(_) |",
        "  | |/ _ \\ '_ \\ / _` | '_ \\| __| | || '__/ _` | | |",
        "  | |  __/ | | | (_| | | | | |_  | || | | (_| | | |",
        "  |_|\\___|_| |_|\\__,_|_| |_|\\__| |_||_|  \\__,_|_|_|",
    ]
    print()
    for i, line in enumerate(banner_lines):
        colour = Fore.CYAN if i % 2 == 0 else Fore.BLUE
        print(f"{colour}{line}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}\nTenantTrail {version} - 'Where did your users wander off to?'{Style.RESET_ALL}\n")


# ================================================================
# Function: fncBlurb
# Purpose : One line of flavour text for the selected scan
# ================================================================
def fncBlurb(action: str, flavour: Optional[str] = None) -> None:
    blurbs = {
        "outbound_access": [
            "Following sign-in footprints across tenant borders…",
            "Counting who left the building, and where they went…",
        ],
        "tenant_lookup": [
            "Knocking on OpenID doors…",
            "Asking the discovery endpoint who lives here…",
        ],
        "kql_queries": [
            "Handing the workspace a fresh batch of KQL…",
            "Asking SigninLogs some pointed questions…",
        ],
        "generic": [
            "Lacing up the boots…",
        ],
    }
    text = flavour or random.choice(blurbs.get(action, blurbs["generic"]))
    fncPrintMessage(text, "info")


def fncEnsureFolder(path) -> pathlib.Path:
    p = pathlib.Path(path).expanduser().resolve()
    p.mkdir(parents=True, exist_ok=True)
    return p


# ================================================================
# Function: fncLoadEnv
# Purpose : Read environment variable with default
# Notes   : Strips surrounding quotes; empty string counts as unset
# ================================================================
def fncLoadEnv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    if isinstance(val, str):
        val = val.strip().strip('"').strip("'")
    return val or default


def fncReadJSON(path: str, safe: bool = True) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as ex:
        if safe:
            fncPrintMessage(f"Could not read JSON '{path}': {ex}", "warn")
            return {}
        raise


# ================================================================
# Function: fncWriteJSON
# Purpose : Write data to JSON with nice formatting
# Notes   : Ensures parent folder exists; datetimes via str()
# ================================================================
def fncWriteJSON(path: str, data: Dict[str, Any]) -> None:
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    fncPrintMessage(f"Saved JSON → {p}", "success")


# ================================================================
# Function: fncExportCSV
# Purpose : Save list[dict] to CSV with a header row
# Notes   : Column order follows the first row, then any extra keys
#           in first-seen order; empty rows + headers -> header only
# ================================================================
def fncExportCSV(path: str, rows: Iterable[Dict[str, Any]], headers: Optional[List[str]] = None) -> None:
    rows = list(rows)
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    cols: List[str] = list(headers or [])
    for r in rows:
        for k in r.keys():
            if k not in cols:
                cols.append(k)

    with open(p, "w", newline="", encoding="utf-8") as f:
        if cols:
            w = csv.DictWriter(f, fieldnames=cols)
            w.writeheader()
            for r in rows:
                w.writerow({k: r.get(k, "") for k in cols})

    if rows:
        fncPrintMessage(f"Saved CSV → {p}", "success")
    else:
        fncPrintMessage(f"Created empty CSV → {p}", "warn")


# ================================================================
# Function: fncToTable
# Purpose : Render rows as a github-style table string
# Notes   : list[dict] only; headers default to first-row key order
# ================================================================
def fncToTable(rows: Iterable[Dict[str, Any]], headers: Optional[List[str]] = None, max_rows: Optional[int] = None) -> str:
    rows = list(rows)
    if not rows:
        return "(no data)"

    hdrs = headers or list(rows[0].keys())
    table_rows = [[r.get(h, "") for h in hdrs] for r in rows]
    if max_rows and len(table_rows) > max_rows:
        table_rows = table_rows[:max_rows] + [["…"] * len(hdrs)]
    return tabulate(table_rows, headers=hdrs, tablefmt="github")


def fncMask(value: Optional[str], show: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= show * 2:
        return "*" * len(value)
    return f"{value[:show]}{'*' * (len(value) - (show * 2))}{value[-show:]}"


def fncNewRunId(prefix: str = "run") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"

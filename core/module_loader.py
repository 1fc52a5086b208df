# ================================================================
# File     : module_loader.py
# Purpose  : Dynamically load and execute scan modules
# Notes    : Scans live in modules/<provider>/<name>.py and expose
#            run(client, args, cfg) plus a CLIENT attribute naming
#            the client they need ("graph", "loganalytics" or None)
# ================================================================

import importlib
import pathlib
import traceback
from typing import Any, Dict, List

from core.errors import MissingInputFile, TenantTrailError
from core.utils import fncPrintMessage

EXIT_OK = 0
EXIT_MISSING_INPUT = 1
EXIT_FAILURE = 2

MODULES_ROOT = pathlib.Path(__file__).resolve().parent.parent / "modules"


# ================================================================
# Function: fncLoadModule
# Purpose : Dynamically import a module based on provider and name
# Notes   : Returns the imported module or None if not found
# ================================================================
def fncLoadModule(provider: str, module_name: str):
    mod_path = f"modules.{provider}.{module_name}"
    try:
        mod = importlib.import_module(mod_path)
    except ModuleNotFoundError:
        fncPrintMessage(f"Module not found: {provider}/{module_name}", "error")
        return None
    fncPrintMessage(f"Loaded module: {mod_path}", "debug")
    return mod


def fncRequiredClient(mod, args):
    """Which client a scan needs: client_kind(args) wins over CLIENT."""
    if hasattr(mod, "client_kind"):
        return mod.client_kind(args)
    return getattr(mod, "CLIENT", None)


# ================================================================
# Function: fncRunModule
# Purpose : Execute a loaded module's run() and map failures
# Notes   : Returns {"exit_code": int, "result": ...}. Auth/fetch
#           errors are printed verbatim; the traceback goes to debug
# ================================================================
def fncRunModule(mod, client, args, cfg: dict) -> Dict[str, Any]:
    name = getattr(mod, "__name__", "module").rsplit(".", 1)[-1]
    try:
        fncPrintMessage(f"Starting module: {name}", "debug")
        result = mod.run(client, args, cfg)
        fncPrintMessage(f"Module complete: {name}", "debug")
    except MissingInputFile as ex:
        fncPrintMessage(str(ex), "error")
        return {"exit_code": EXIT_MISSING_INPUT, "error": str(ex)}
    except TenantTrailError as ex:
        fncPrintMessage(str(ex), "error")
        fncPrintMessage(traceback.format_exc(), "debug")
        return {"exit_code": EXIT_FAILURE, "error": str(ex)}

    exit_code = EXIT_OK
    if isinstance(result, dict):
        exit_code = int(result.get("exit_code", EXIT_OK))
    return {"exit_code": exit_code, "result": result}


# ================================================================
# Function: fncDiscoverModules
# Purpose : List scan modules for a provider
# Notes   : Ignores files starting with '_' by convention
# ================================================================
def fncDiscoverModules(provider: str) -> List[str]:
    base = MODULES_ROOT / provider
    if not base.is_dir():
        fncPrintMessage(f"No modules directory for provider '{provider}' (expected: {base})", "warn")
        return []
    mods = sorted(p.stem for p in base.iterdir() if p.is_file() and p.suffix == ".py" and not p.name.startswith("_"))
    fncPrintMessage(f"Discovered modules for {provider}: {mods}", "debug")
    return mods

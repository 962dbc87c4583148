# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/cli.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

mcpsheets CLI ─ a thin wrapper around Uvicorn
This module is exposed as a **console-script** via:

    [project.scripts]
    mcpsheets = "mcpsheets.cli:main"

Features
─────────
* Injects the application path (``mcpsheets.main:app``) when none is given.
* Listens on ``settings.host`` and ``settings.port`` (0.0.0.0:3000) unless
  ``--host``/``--port`` are passed. A ``--port`` value that is missing or not
  a number falls back to the configured port.
* Forwards all remaining arguments verbatim to Uvicorn's own CLI.

Typical usage
─────────────
```console
$ mcpsheets                   # 0.0.0.0:3000
$ mcpsheets --port 8080
$ mcpsheets --reload
```
"""

# Future
from __future__ import annotations

# Standard
import json
import logging
import sys
from typing import List, Optional

# Third-Party
import uvicorn

# First-Party
from mcpsheets import __version__
from mcpsheets.config import get_settings, Settings

logger = logging.getLogger(__name__)

DEFAULT_APP = "mcpsheets.main:app"


def _needs_app(arg_list: List[str]) -> bool:
    """Return *True* when the CLI invocation has *no* positional APP path.

    Args:
        arg_list (List[str]): List of arguments

    Returns:
        bool: Returns *True* when the first argument is an option or absent

    Examples:
        >>> _needs_app([])
        True
        >>> _needs_app(["--reload"])
        True
        >>> _needs_app(["myapp.main:app"])
        False
    """
    return len(arg_list) == 0 or arg_list[0].startswith("-")


def _parse_port(value: Optional[str], default: int) -> int:
    """Parse a port number, falling back to ``default``.

    Args:
        value: Raw ``--port`` value
        default: Port used when ``value`` is missing or invalid

    Returns:
        int: Port number

    Examples:
        >>> _parse_port("8080", 3000)
        8080
        >>> _parse_port("abc", 3000)
        3000
        >>> _parse_port(None, 3000)
        3000
        >>> _parse_port("70000", 3000)
        3000
    """
    try:
        port = int(value) if value is not None else default
    except ValueError:
        logger.warning(f"Invalid port {value!r}, using {default}")
        return default
    if not 0 < port < 65536:
        logger.warning(f"Port {port} out of range, using {default}")
        return default
    return port


def _insert_defaults(raw_args: List[str], settings: Settings) -> List[str]:
    """Return a *new* argv with defaults sprinkled in where needed.

    Args:
        raw_args (List[str]): List of input arguments to cli
        settings (Settings): Settings supplying host and port defaults

    Returns:
        List[str]: List of arguments for Uvicorn

    Examples:
        >>> s = Settings(_env_file=None)
        >>> _insert_defaults([], s)
        ['mcpsheets.main:app', '--host', '0.0.0.0', '--port', '3000']
        >>> _insert_defaults(["--port", "nope"], s)
        ['mcpsheets.main:app', '--port', '3000', '--host', '0.0.0.0']
        >>> _insert_defaults(["--port"], s)
        ['mcpsheets.main:app', '--port', '3000', '--host', '0.0.0.0']
        >>> _insert_defaults(["--port=8081"], s)
        ['mcpsheets.main:app', '--port', '8081', '--host', '0.0.0.0']
    """
    args: List[str] = []
    port: Optional[int] = None
    i = 0
    while i < len(raw_args):
        arg = raw_args[i]
        if arg == "--port":
            nxt = raw_args[i + 1] if i + 1 < len(raw_args) and not raw_args[i + 1].startswith("-") else None
            port = _parse_port(nxt, settings.port)
            args.extend(["--port", str(port)])
            i += 2 if nxt is not None else 1
            continue
        if arg.startswith("--port="):
            port = _parse_port(arg.split("=", 1)[1], settings.port)
            args.extend(["--port", str(port)])
            i += 1
            continue
        args.append(arg)
        i += 1

    if _needs_app(args):
        args.insert(0, DEFAULT_APP)

    if "--uds" not in args:
        if "--host" not in args:
            args.extend(["--host", settings.host])
        if port is None:
            args.extend(["--port", str(settings.port)])

    return args


def _handle_config_schema(output: Optional[str] = None) -> None:
    """Print or write the JSON schema of ``Settings``.

    Args:
        output (Optional[str]): Optional file path to write the schema.
            If None, prints to stdout.
    """
    data = json.dumps(Settings.model_json_schema(mode="validation"), indent=2, sort_keys=True)
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(data)
        print(f"Schema written to {output}")
    else:
        print(data)


def main() -> None:
    """Entry point for the *mcpsheets* console script (delegates to Uvicorn).

    Usage:
        mcpsheets [--port N] [uvicorn options]
        mcpsheets --version
        mcpsheets --config-schema [output]
    """
    if "--version" in sys.argv or "-V" in sys.argv:
        print(f"mcpsheets {__version__}")
        return

    if len(sys.argv) > 1 and sys.argv[1] == "--config-schema":
        _handle_config_schema(sys.argv[2] if len(sys.argv) > 2 else None)
        return

    uvicorn_argv = _insert_defaults(sys.argv[1:], get_settings())

    # Uvicorn's `main()` uses sys.argv - patch it in and run.
    sys.argv = ["mcpsheets", *uvicorn_argv]
    uvicorn.main()  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":  # pragma: no cover - executed only when run directly
    main()

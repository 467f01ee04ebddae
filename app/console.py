# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: main launcher for ToolDeck: makes sure a .env with a session secret exists, sets up console
logging, starts the local dashboard and opens it in the browser. the terminal shows a welcome banner
and short status lines while the server runs in a background thread.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import argparse  # for parsing command line arguments
import logging  # for the tooldeck.* status lines and silencing library loggers
import os
import re
import secrets  # for generating the session secret on first run
import sys  # for checking if we are frozen (packaged) and getting executable path
import threading  # for running the dashboard in a background thread
import time  # for delays and sleep
import webbrowser  # for opening the dashboard in the browser
from pathlib import Path  # for working with file paths

# load environment variables from .env file before importing dashboard
try:
    from dotenv import load_dotenv
except ImportError:
    load_dotenv = None  # python-dotenv is optional, but recommended


def _resolve_base_dir() -> Path:
    # figure out the base directory of the application
    if getattr(sys, "frozen", False):  # packaged executable (like PyInstaller)
        return Path(sys.executable).parent
    return Path(__file__).resolve().parents[1]  # project root


ENV_TEMPLATE = """# =========================================
# ToolDeck Environment Variables
# =========================================
# auto-generated on first run - keep this file private and never commit it!

# required: secret key for Flask session cookies (auto-generated)
TOOLDECK_SESSION_SECRET={session_secret}

# optional: where the dashboard listens
# TOOLDECK_HOST=127.0.0.1
# TOOLDECK_PORT=8780
"""


def ensure_env_file(base_dir: Path) -> bool:
    """
    write a .env with a fresh session secret when none exists and the secret is not already set.
    returns True if a file was written.
    """
    if load_dotenv is not None:
        load_dotenv(base_dir / ".env")
    if os.getenv("TOOLDECK_SESSION_SECRET"):
        return False

    env_file = base_dir / ".env"
    if env_file.exists():
        return False
    try:
        env_file.write_text(
            ENV_TEMPLATE.format(session_secret=secrets.token_hex(32)), encoding="utf-8"
        )
    except OSError:
        # if we can not write .env, importing the dashboard fails with a clear error instead
        return False
    if load_dotenv is not None:
        load_dotenv(env_file)
    return True


class StatusFormatter(logging.Formatter):
    """message-only formatter that colors error codes, check marks and the app name"""

    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    YELLOW = "\x1b[33m"
    MAGENTA = "\x1b[35m"
    RESET = "\x1b[0m"

    _CODES_RE = re.compile(
        r"\b(INVALID_PAYLOAD|UNSUPPORTED_VERSION|INTEGRITY_FAILED|DECRYPTION_FAILED|MALFORMED_INPUT)\b"
    )

    def __init__(self, *args, use_color: bool | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        if use_color is None:
            # try to import colorama for Windows ANSI support
            try:
                from colorama import just_fix_windows_console

                just_fix_windows_console()
                use_color = True
            except Exception:
                use_color = False
        self.use_color = use_color

    def format(self, record):
        msg = record.getMessage()
        if not self.use_color:
            return msg

        msg = self._CODES_RE.sub(self.YELLOW + r"\1" + self.RESET, msg)
        msg = msg.replace("✓", self.GREEN + "✓" + self.RESET)
        msg = msg.replace("ToolDeck", self.MAGENTA + "ToolDeck" + self.RESET)
        if record.levelno >= logging.ERROR:
            msg = self.RED + msg + self.RESET
        return msg


def setup_logging(level: str = "INFO") -> logging.Logger:
    """one stream handler on the tooldeck logger tree, everything else stays quiet."""
    # set root logging level high enough so library warnings do not spam the console
    logging.basicConfig(level=logging.ERROR)

    # silence waitress web server log messages so the console stays clean
    logging.getLogger("waitress").setLevel(logging.CRITICAL)
    logging.getLogger("waitress.queue").setLevel(logging.CRITICAL)

    root = logging.getLogger("tooldeck")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(getattr(h, "_tooldeck", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(StatusFormatter("%(message)s"))
        handler._tooldeck = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.propagate = False  # prevent duplicate messages through the root logger
    return root


# --- ASCII banner ---
def print_banner() -> None:
    # use ANSI color codes if available (Windows via colorama), otherwise plain text
    try:
        from colorama import just_fix_windows_console

        just_fix_windows_console()
        cyan = "\x1b[36m"
        mag = "\x1b[35m"
        dim = "\x1b[2m"
        bold = "\x1b[1m"
        reset = "\x1b[0m"
    except Exception:
        cyan = mag = dim = bold = reset = ""

    banner = f"""
{dim}┌────────────────────────────────────────────────────────────┐{reset}
{dim}│{reset}{cyan}{bold}                    T  o  o  l  D  e  c  k{reset}{dim}                  │{reset}
{dim}├────────────────────────────────────────────────────────────┤{reset}
{mag}        text diff  •  password generator  •  encryption       {reset}
{dim}├────────────────────────────────────────────────────────────┤{reset}
{dim}│{reset}  Tip: if running in a terminal, press {cyan}Ctrl+C{reset} to quit.      {dim}│{reset}
{dim}└────────────────────────────────────────────────────────────┘{reset}
"""
    print(banner)


# --- end banner ---


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="ToolDeck")
    parser.add_argument(
        "--no-open",
        action="store_true",
        help="do not open the dashboard in the browser automatically",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="show debug status lines (diff timings, stale results)",
    )
    args = parser.parse_args(argv)

    base_dir = _resolve_base_dir()
    ensure_env_file(base_dir)

    # the dashboard reads the session secret at import time, so import it only now
    from dashboard.app import CFG, run_dashboard

    logger = setup_logging("DEBUG" if args.debug else CFG.log_level)
    print_banner()

    threading.Thread(target=run_dashboard, name="dashboard", daemon=True).start()
    url = f"http://{CFG.host}:{CFG.port}"
    logger.info(f"✓ ToolDeck running at {url}")

    if not args.no_open:

        def _open_browser() -> None:
            # short delay so the server is listening before we try to open it
            time.sleep(0.8)
            try:
                webbrowser.open(url)
            except Exception:
                pass  # user can open the URL manually

        threading.Thread(target=_open_browser, name="open-browser", daemon=True).start()

    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Shutting down ToolDeck...")


if __name__ == "__main__":
    main()

# SPDX-License-Identifier: GPL-3.0-or-later
#!/usr/bin/env python3
"""
goal: environment setup script for ToolDeck. auto-generates a .env file with a secure session secret
      if it doesn't exist, so new devs can start the dashboard without creating env files by hand.
"""

import secrets
from pathlib import Path

from app.console import ENV_TEMPLATE


def generate_secret(length: int = 32) -> str:
    """
    generate a random hex secret string. uses Python's secrets module which is cryptographically secure.
    length is in bytes, so length=32 gives a 64-character hex string.
    """
    return secrets.token_hex(length)


def setup_env(env_file: Path = Path(".env")) -> bool:
    """
    checks if .env exists, and if not, creates it with an auto-generated session secret.
    returns True if the file was created.
    """
    # if .env already exists, don't overwrite it - dev might have custom values
    if env_file.exists():
        print("[OK] .env file already exists")
        print("  Skipping setup. Delete .env if you want to regenerate.")
        return False

    env_file.write_text(ENV_TEMPLATE.format(session_secret=generate_secret(32)), encoding="utf-8")

    print("[OK] Created .env file with auto-generated session secret")
    print("  You can now run: python -m app.console")
    return True


if __name__ == "__main__":
    setup_env()

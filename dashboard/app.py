# ruff: noqa: E501
"""
goal: flask web dashboard for ToolDeck. exposes the text diff, password generator, symmetric
         encryption and the small text tools as a local JSON API. runs entirely locally, nothing
         is stored and nothing leaves the machine.

what this app is responsible for:
- diff API: runs the hierarchical text diff for the UI on every (debounced) edit. each browser
  session owns a DiffSession so that a slow, older request can never overwrite the result of a
  newer one ("latest request wins")
- password API: builds a PasswordRequest from the form and returns password + entropy estimate
- crypto API: encrypt/decrypt with the versioned envelope, key strength, random key generation.
  every CryptoError is turned into a 400 with its error code, no library error reaches the client
- text tools API: case conversion, word counter stats, Base64
- input limits: oversized texts are refused with a 413 before any work is done

how a diff request flows:
1. the UI sends {old, new, settings, generation}
2. the session's DiffSession records the generation as the newest one it has seen
3. the diff is computed
4. if a newer generation arrived while we were computing, the response says stale=true and carries
   no lines, the UI keeps whatever it is already showing
"""

from __future__ import annotations

# --- standard library ---
import logging
import os
import secrets
import threading
from collections import OrderedDict
from typing import Any

# load environment variables from .env file before reading secrets
try:
    from dotenv import load_dotenv

    load_dotenv()  # load .env file if it exists (required for the session secret)
except ImportError:
    pass  # python-dotenv is optional, but required for .env support

# --- third-party ---
from flask import Flask, jsonify, request, session

# --- local/project imports ---
from algorithm.diff_session import DiffSession
from algorithm.text_diff import count_lines, diff_stats, is_identical
from algorithm.text_tools import (
    CASE_MODES,
    JSON_ACTIONS,
    LOREM_TYPES,
    MAX_LIMITS,
    convert_case,
    decode_base64,
    encode_base64,
    generate_lorem,
    is_valid_base64,
    text_stats,
    transform_json,
)
from algorithm.tokenizer import NormalizationSettings, parse_flag
from dashboard.config import Config, load_config
from security.password_gen import PasswordRequest, generate_password
from security.symmetric_crypto import (
    ALGORITHMS,
    CryptoError,
    CryptoErrorCode,
    check_key_strength,
    decrypt_text,
    encrypt_text,
    generate_random_key,
)

# single waitress optional block (we keep only this one, after all imports)
try:
    from waitress import serve as _serve  # type: ignore[import-untyped]

    HAVE_WAITRESS = True
except Exception:
    HAVE_WAITRESS = False
    _serve = None  # type: ignore

dashboard_logger = logging.getLogger("tooldeck.dashboard")

# load secrets from environment
SESSION_SECRET = os.getenv("TOOLDECK_SESSION_SECRET")
if not SESSION_SECRET:
    raise ValueError("TOOLDECK_SESSION_SECRET environment variable is required")

# load configuration and set up paths
CFG: Config = load_config()
BASE_DIR = CFG.base_dir
MAX_INPUT_CHARS = CFG.max_input_chars
MAX_DIFF_LINES = CFG.max_diff_lines
MAX_LINE_TOKENS = CFG.max_line_tokens

# one DiffSession per browser session, oldest evicted first so memory stays bounded
MAX_DIFF_SESSIONS = 256
_DIFF_SESSIONS: OrderedDict[str, DiffSession] = OrderedDict()
_SESSIONS_LOCK = threading.Lock()


def _diff_session_for(sid: str) -> DiffSession:
    with _SESSIONS_LOCK:
        ds = _DIFF_SESSIONS.get(sid)
        if ds is None:
            ds = DiffSession()
            _DIFF_SESSIONS[sid] = ds
            while len(_DIFF_SESSIONS) > MAX_DIFF_SESSIONS:
                _DIFF_SESSIONS.popitem(last=False)
        else:
            _DIFF_SESSIONS.move_to_end(sid)
        return ds


def _session_id() -> str:
    # anonymous per-browser id, only used to scope the generation counter
    sid = session.get("sid")
    if not sid:
        sid = secrets.token_hex(16)
        session["sid"] = sid
    return sid


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _error(code: str, message: str, status: int = 400):
    return jsonify({"ok": False, "error": code, "message": message}), status


def _too_large(*texts: str) -> bool:
    return any(len(t) > MAX_INPUT_CHARS for t in texts)


def _read_version() -> tuple[str, str]:
    # VERSION.txt: first line version, second line build
    version = "-"
    build = "-"
    vpath = BASE_DIR / "VERSION.txt"
    if vpath.exists():
        try:
            lines = [
                line.strip()
                for line in vpath.read_text(encoding="utf-8").splitlines()
                if line.strip()
            ]
            if len(lines) >= 1:
                version = lines[0]
            if len(lines) >= 2:
                build = lines[1]
        except OSError:
            pass
    return version, build


def build_app() -> Flask:
    app = Flask(__name__)

    # sessions only carry the anonymous diff-session id and expire when the browser closes
    assert SESSION_SECRET is not None
    app.secret_key = SESSION_SECRET
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_NAME"] = "tooldeck_session"
    app.config["MAX_CONTENT_LENGTH"] = MAX_INPUT_CHARS * 8  # raw body cap, texts are checked again below

    @app.get("/")
    def index():
        return jsonify(
            {
                "name": "ToolDeck",
                "tools": {
                    "diff": "/api/diff",
                    "password": "/api/password",
                    "encrypt": "/api/crypto/encrypt",
                    "decrypt": "/api/crypto/decrypt",
                    "key_strength": "/api/crypto/strength",
                    "random_key": "/api/crypto/random-key",
                    "case": "/api/text/case",
                    "stats": "/api/text/stats",
                    "base64": "/api/text/base64",
                    "json": "/api/text/json",
                    "lorem": "/api/text/lorem",
                },
            }
        )

    @app.get("/api/ping")
    def ping():
        return jsonify({"ok": True})

    # about endpoint: version and the knobs the UI needs (debounce window, input limit)
    @app.get("/api/about")
    def about():
        version, build = _read_version()
        return jsonify(
            {
                "version": version,
                "build": build,
                "debounce_ms": CFG.debounce_ms,
                "max_input_chars": MAX_INPUT_CHARS,
                "max_diff_lines": MAX_DIFF_LINES,
            }
        )

    # ---------------- diff ----------------

    @app.post("/api/diff")
    def api_diff():
        body = _json_body()
        old_text = body.get("old", "")
        new_text = body.get("new", "")
        if not isinstance(old_text, str) or not isinstance(new_text, str):
            return _error("BAD_REQUEST", "old and new must be strings")
        if _too_large(old_text, new_text):
            return _error("TOO_LARGE", f"Texts are limited to {MAX_INPUT_CHARS} characters", 413)

        generation = body.get("generation")
        if generation is not None and (isinstance(generation, bool) or not isinstance(generation, int)):
            return _error("BAD_REQUEST", "generation must be an integer")

        if max(count_lines(old_text), count_lines(new_text)) > MAX_DIFF_LINES:
            return _error(
                "TOO_LARGE", f"Each side of a diff is limited to {MAX_DIFF_LINES} lines", 413
            )

        raw_settings = body.get("settings")
        if raw_settings is not None and not isinstance(raw_settings, dict):
            return _error("BAD_REQUEST", "settings must be an object")
        try:
            settings = NormalizationSettings.from_dict(raw_settings)
        except ValueError as e:
            return _error("BAD_REQUEST", str(e))

        ds = _diff_session_for(_session_id())
        gen, lines = ds.run(
            old_text, new_text, settings, generation=generation, max_line_tokens=MAX_LINE_TOKENS
        )

        if lines is None:
            # a newer request from this session is already in flight or done
            return jsonify({"ok": True, "stale": True, "generation": gen})

        return jsonify(
            {
                "ok": True,
                "stale": False,
                "generation": gen,
                "settings": settings.to_dict(),
                "empty": not old_text and not new_text,
                "identical": bool(lines) and is_identical(lines),
                "stats": diff_stats(lines),
                "lines": [line.to_dict() for line in lines],
            }
        )

    @app.post("/api/diff/clear")
    def api_diff_clear():
        ds = _diff_session_for(_session_id())
        ds.clear()
        return jsonify({"ok": True, "generation": ds.latest})

    # ---------------- password ----------------

    @app.post("/api/password")
    def api_password():
        body = _json_body()
        classes = body.get("classes")
        if classes is not None and not isinstance(classes, list):
            return _error("BAD_REQUEST", "classes must be a list")
        try:
            req = PasswordRequest.from_dict(body, default_length=CFG.default_password_length)
        except ValueError as e:
            return _error("BAD_REQUEST", str(e))
        if req.length > 4096:
            return _error("BAD_REQUEST", "length must be at most 4096")
        return jsonify(generate_password(req))

    # ---------------- crypto ----------------

    @app.post("/api/crypto/encrypt")
    def api_encrypt():
        body = _json_body()
        plaintext = body.get("plaintext", "")
        passphrase = body.get("passphrase", "")
        algorithm = body.get("algorithm", "AES")
        if not all(isinstance(v, str) for v in (plaintext, passphrase, algorithm)):
            return _error(CryptoErrorCode.MALFORMED_INPUT.value, "plaintext, passphrase and algorithm must be strings")
        if _too_large(plaintext):
            return _error("TOO_LARGE", f"Texts are limited to {MAX_INPUT_CHARS} characters", 413)
        try:
            payload = encrypt_text(plaintext, passphrase, algorithm)
        except CryptoError as e:
            return _error(e.code.value, str(e))
        return jsonify({"ok": True, "payload": payload, "legacy": algorithm != "AES"})

    @app.post("/api/crypto/decrypt")
    def api_decrypt():
        body = _json_body()
        payload = body.get("payload", "")
        passphrase = body.get("passphrase", "")
        if not isinstance(payload, str) or not isinstance(passphrase, str):
            return _error(CryptoErrorCode.INVALID_PAYLOAD.value, "payload and passphrase must be strings")
        if _too_large(payload):
            return _error("TOO_LARGE", f"Texts are limited to {MAX_INPUT_CHARS} characters", 413)
        try:
            plaintext = decrypt_text(payload, passphrase)
        except CryptoError as e:
            return _error(e.code.value, str(e))
        return jsonify({"ok": True, "plaintext": plaintext})

    @app.post("/api/crypto/strength")
    def api_strength():
        key = _json_body().get("key", "")
        if not isinstance(key, str):
            return _error("BAD_REQUEST", "key must be a string")
        return jsonify({"strength": check_key_strength(key)})

    @app.get("/api/crypto/random-key")
    def api_random_key():
        try:
            length = int(request.args.get("length", CFG.random_key_length))
        except ValueError:
            return _error("BAD_REQUEST", "length must be an integer")
        length = max(1, min(length, 256))
        return jsonify({"key": generate_random_key(length), "algorithms": list(ALGORITHMS)})

    # ---------------- text tools ----------------

    @app.post("/api/text/case")
    def api_text_case():
        body = _json_body()
        text = body.get("text", "")
        mode = body.get("mode", "")
        if not isinstance(text, str):
            return _error("BAD_REQUEST", "text must be a string")
        if mode not in CASE_MODES:
            return _error("BAD_REQUEST", f"mode must be one of {', '.join(CASE_MODES)}")
        if _too_large(text):
            return _error("TOO_LARGE", f"Texts are limited to {MAX_INPUT_CHARS} characters", 413)
        return jsonify({"text": convert_case(text, mode)})

    @app.post("/api/text/stats")
    def api_text_stats():
        text = _json_body().get("text", "")
        if not isinstance(text, str):
            return _error("BAD_REQUEST", "text must be a string")
        if _too_large(text):
            return _error("TOO_LARGE", f"Texts are limited to {MAX_INPUT_CHARS} characters", 413)
        return jsonify(text_stats(text))

    @app.post("/api/text/base64")
    def api_text_base64():
        body = _json_body()
        text = body.get("text", "")
        action = body.get("action", "encode")
        if not isinstance(text, str):
            return _error("BAD_REQUEST", "text must be a string")
        if _too_large(text):
            return _error("TOO_LARGE", f"Texts are limited to {MAX_INPUT_CHARS} characters", 413)
        if action == "encode":
            return jsonify({"ok": True, "text": encode_base64(text)})
        if action == "validate":
            return jsonify({"ok": True, "valid": is_valid_base64(text)})
        if action == "decode":
            if not is_valid_base64(text):
                return _error("INVALID_BASE64", "Input is not valid Base64")
            try:
                return jsonify({"ok": True, "text": decode_base64(text)})
            except UnicodeDecodeError:
                return _error("INVALID_BASE64", "Decoded bytes are not UTF-8 text")
        return _error("BAD_REQUEST", "action must be encode, decode or validate")

    @app.post("/api/text/json")
    def api_text_json():
        body = _json_body()
        text = body.get("text", "")
        action = body.get("action", "format")
        indent = body.get("indent", 2)
        if not isinstance(text, str):
            return _error("BAD_REQUEST", "text must be a string")
        if action not in JSON_ACTIONS:
            return _error("BAD_REQUEST", f"action must be one of {', '.join(JSON_ACTIONS)}")
        if isinstance(indent, bool) or not isinstance(indent, int) or indent not in (2, 4):
            return _error("BAD_REQUEST", "indent must be 2 or 4")
        if _too_large(text):
            return _error("TOO_LARGE", f"Texts are limited to {MAX_INPUT_CHARS} characters", 413)
        try:
            out = transform_json(text, action, indent)
        except ValueError as e:
            return _error("INVALID_JSON", f"Invalid JSON: {e}")
        except RecursionError:
            return _error("INVALID_JSON", "JSON is nested too deeply")
        return jsonify({"ok": True, "text": out, "chars": len(out)})

    @app.post("/api/text/lorem")
    def api_text_lorem():
        body = _json_body()
        kind = body.get("type", "paragraphs")
        amount = body.get("amount", 3)
        if kind not in LOREM_TYPES:
            return _error("BAD_REQUEST", f"type must be one of {', '.join(LOREM_TYPES)}")
        if isinstance(amount, bool) or not isinstance(amount, int):
            return _error("BAD_REQUEST", "amount must be an integer")
        try:
            start = parse_flag(body.get("start_with_lorem", body.get("startWithLorem")), True)
        except ValueError as e:
            return _error("BAD_REQUEST", str(e))
        text = generate_lorem(kind, amount, start)
        return jsonify({"text": text, "amount": max(0, min(amount, MAX_LIMITS[kind]))})

    return app


def run_dashboard() -> None:
    app = build_app()
    dashboard_logger.info(f"ToolDeck dashboard listening on http://{CFG.host}:{CFG.port}")
    if HAVE_WAITRESS:
        try:
            _serve(app, host=CFG.host, port=CFG.port)
        except (SystemExit, KeyboardInterrupt):
            pass  # expected when shutting down
    else:
        try:
            app.run(host=CFG.host, port=CFG.port, debug=False)
        except (SystemExit, KeyboardInterrupt):
            pass  # expected when shutting down


# standalone mode (optional): "python -m dashboard.app"
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_dashboard()

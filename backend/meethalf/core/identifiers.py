"""Identifier generation — share tokens and guest user ids."""

import re
import secrets
import string

TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"
TOKEN_LENGTH = 32
GUEST_PREFIX = "guest_"


def generate_token(length: int = TOKEN_LENGTH) -> str:
    """URL-safe random token (nanoid alphabet)."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def generate_guest_user_id(now_ms: int) -> str:
    """guest_<epoch ms>_<9 random base36 chars>."""
    suffix = "".join(
        secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9)
    )
    return f"{GUEST_PREFIX}{now_ms}_{suffix}"


def is_guest_user_id(value: str | None) -> bool:
    return bool(value) and value.startswith(GUEST_PREFIX)


def handle_from_email(email: str, suffix: str) -> str:
    """Default public handle: sanitized email prefix + "_" + suffix."""
    prefix = re.sub(r"[^a-z0-9_]", "", email.split("@")[0].lower()) or "user"
    return f"{prefix}_{suffix}"


def random_suffix(length: int = 3) -> str:
    return "".join(
        secrets.choice(string.ascii_lowercase + string.digits) for _ in range(length)
    )

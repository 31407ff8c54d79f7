"""
Authentication: email/password accounts, opaque session tokens, and the local
token file the CLI uses to stay signed in between commands.

Passwords are stored as werkzeug hashes. Tokens are random URL-safe strings
kept in auth_sessions with an expiry.
"""

import json
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from werkzeug.security import generate_password_hash, check_password_hash

from prospectcrm.config import config
from prospectcrm.db.connection import get_db_cursor
from prospectcrm.db.store import table
from prospectcrm.models import AuthUser, Session
from prospectcrm.bus.events import bus, EVENT_SIGNED_IN, EVENT_SIGNED_OUT

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _normalise_email(email: str) -> str:
    email = (email or '').strip().lower()
    if not email or '@' not in email:
        raise ValueError("A valid email address is required")
    return email


def _open_session(user: AuthUser) -> Session:
    token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(hours=config.SESSION_TTL_HOURS)
    table('auth_sessions').insert({'token': token, 'user_id': user.id, 'expires_at': expires_at}, returning='token')
    logger.info(f"Opened session for {user.email}")
    bus.emit(EVENT_SIGNED_IN, {'user_id': user.id})
    return Session(token=token, user=user, expires_at=expires_at)


def sign_up(email: str, password: str, prenom: str, nom: str) -> Session:
    """
    Create an account with a 'commercial' profile, then sign in.
    Raises ValueError for a duplicate email or an invalid form.
    """
    email = _normalise_email(email)
    if len(password or '') < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    prenom = (prenom or '').strip()
    nom = (nom or '').strip()
    if not prenom or not nom:
        raise ValueError("First and last name are required")

    if table('auth_users').select_one({'email': email}, columns=['id']):
        raise ValueError(f"An account already exists for {email}")

    # User and profile are created in one transaction
    with get_db_cursor() as cur:
        cur.execute(
            "INSERT INTO auth_users (email, password_hash) VALUES (%s, %s) RETURNING id",
            (email, generate_password_hash(password)),
        )
        user_id = cur.fetchone()['id']
        cur.execute(
            "INSERT INTO profiles (id, prenom, nom, role) VALUES (%s, %s, %s, 'commercial')",
            (user_id, prenom, nom),
        )

    logger.info(f"Signed up {email} (ID {user_id})")
    return _open_session(AuthUser(id=user_id, email=email))


def sign_in_with_password(email: str, password: str) -> Session:
    """Raises ValueError on unknown email or wrong password."""
    email = _normalise_email(email)
    row = table('auth_users').select_one({'email': email}, columns=['id', 'email', 'password_hash'])
    if not row or not check_password_hash(row['password_hash'], password or ''):
        logger.warning(f"Failed sign-in for {email}")
        raise ValueError("Invalid email or password")
    return _open_session(AuthUser(id=row['id'], email=row['email']))


def sign_out(token: str) -> bool:
    if not token:
        return False
    row = table('auth_sessions').select_one({'token': token}, columns=['user_id'])
    removed = table('auth_sessions').delete({'token': token}) > 0
    if removed:
        logger.info("Session closed")
        bus.emit(EVENT_SIGNED_OUT, {'user_id': row['user_id'] if row else None})
    return removed


def get_session(token: Optional[str]) -> Optional[Session]:
    """The session for this token, or None when unknown or expired."""
    if not token:
        return None
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT s.token, s.expires_at, u.id AS user_id, u.email
            FROM auth_sessions s
            JOIN auth_users u ON u.id = s.user_id
            WHERE s.token = %s AND s.expires_at > NOW()
        """, (token,))
        row = cur.fetchone()
    if not row:
        return None
    return Session(token=row['token'], user=AuthUser(id=row['user_id'], email=row['email']),
                   expires_at=row['expires_at'])


def get_current_user(token: Optional[str]) -> Optional[AuthUser]:
    session = get_session(token)
    return session.user if session else None


# =============================================================================
# LOCAL TOKEN FILE (CLI)
# =============================================================================

def save_token(session: Session) -> None:
    path = config.SESSION_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {'token': session.token, 'user_id': session.user.id, 'email': session.user.email}
    path.write_text(json.dumps(payload), encoding='utf-8')
    path.chmod(0o600)


def load_token() -> Optional[str]:
    return _read_session_file().get('token')


def clear_token() -> None:
    path = config.SESSION_FILE
    if path.exists():
        path.unlink()


def _read_session_file() -> dict:
    path = config.SESSION_FILE
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable session file {path}: {e}")
        return {}


def save_view_selection(user_id: str) -> None:
    """Remember the admin's selected view for the next CLI commands."""
    payload = _read_session_file()
    if not payload.get('token'):
        raise ValueError("Not signed in")
    payload['view'] = user_id
    config.SESSION_FILE.write_text(json.dumps(payload), encoding='utf-8')


def load_view_selection() -> Optional[str]:
    return _read_session_file().get('view')

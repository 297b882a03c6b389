"""
User repository - server-side credential store behind /api/users.

Passwords are stored as bcrypt hashes. Rows written before hashing was
introduced hold the plaintext password; such a row is accepted once on an
exact match and rewritten to a hash in the same login.
"""

import secrets
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, Optional
import bcrypt

from config.app_config import get_config
from services.auth_service.models import User
from utils.logging_config import get_logger

BCRYPT_PREFIX = "$2"


class CredentialError(Exception):
    """Request refused by the credential store"""
    code = "invalid_request"
    status_code = 400


class IdTooShortError(CredentialError):
    code = "id_too_short"


class DuplicateIdError(CredentialError):
    code = "duplicate_id"


class UserNotFoundError(CredentialError):
    code = "not_found"
    status_code = 404


class InvalidPasswordError(CredentialError):
    code = "bad_password"
    status_code = 401


class SessionExpiredError(CredentialError):
    code = "session_expired"
    status_code = 401


class UserRepository:
    """
    Repository for user credentials, profiles and session tokens.
    """

    def __init__(self, db_path: str = None):
        """
        Initialize user repository

        Args:
            db_path: Path to user database (defaults to config setting)
        """
        self.logger = get_logger(__name__)
        self.config = get_config()
        self.db_path = db_path or self.config.server.user_db_path
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        """Initialize user database table"""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with closing(self._connect()) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT,
                    password TEXT,
                    avatar TEXT,
                    color TEXT,
                    name_color TEXT,
                    credits INTEGER,
                    session_token TEXT
                )
            """)
            conn.commit()

        self.logger.info("User database initialized")

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def _verify_password(self, password: str, hashed: str) -> bool:
        """Verify password against hash"""
        try:
            return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
        except ValueError:
            return False

    @staticmethod
    def _generate_token() -> str:
        return secrets.token_hex(32)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            avatar=row["avatar"] or "",
            color=row["color"] or "",
            name_color=row["name_color"],
            credits=row["credits"] or 0,
            token=row["session_token"],
        )

    def _get_row(self, conn: sqlite3.Connection, user_id: str) -> Optional[sqlite3.Row]:
        return conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

    def register(self, user: Dict[str, Any], password: str) -> User:
        """
        Create a new account

        Args:
            user: Candidate profile in wire form (id, username, avatar, color, nameColor)
            password: Plain text password (will be hashed)

        Returns:
            The stored user with a fresh session token

        Raises:
            IdTooShortError: Id shorter than the configured minimum
            DuplicateIdError: Id already registered
            CredentialError: Missing username or password
        """
        user_id = (user.get("id") or "").strip()
        if len(user_id) < self.config.auth.min_id_length:
            raise IdTooShortError(f"ID too short (at least {self.config.auth.min_id_length} characters)")
        if not user.get("username") or not password:
            raise CredentialError("Username and password are required")

        token = self._generate_token()
        created = User(
            id=user_id,
            username=user["username"],
            avatar=user.get("avatar") or "",
            color=user.get("color") or "",
            name_color=user.get("nameColor") or self.config.auth.default_name_color,
            credits=self.config.auth.starting_credits,
            token=token,
        )

        with closing(self._connect()) as conn:
            if self._get_row(conn, user_id) is not None:
                self.logger.warning(f"Registration with existing id: {user_id}")
                raise DuplicateIdError("ID already exists")

            try:
                conn.execute("""
                    INSERT INTO users (id, username, password, avatar, color, name_color, credits, session_token)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (created.id, created.username, self._hash_password(password), created.avatar,
                      created.color, created.name_color, created.credits, token))
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise DuplicateIdError("ID already exists") from e

        self.logger.info(f"User registered: {user_id}")
        return created

    def login(self, user_id: str, password: str) -> User:
        """
        Authenticate and issue a new session token

        Raises:
            UserNotFoundError: Unknown id
            InvalidPasswordError: Wrong password
        """
        with closing(self._connect()) as conn:
            row = self._get_row(conn, user_id)
            if row is None:
                self.logger.warning(f"Login for unknown user: {user_id}")
                raise UserNotFoundError("Account does not exist")

            stored = row["password"] or ""
            if stored.startswith(BCRYPT_PREFIX):
                valid = self._verify_password(password or "", stored)
            else:
                # Legacy plaintext row
                valid = bool(password) and secrets.compare_digest(stored.encode("utf-8"), password.encode("utf-8"))
                if valid:
                    conn.execute("UPDATE users SET password = ? WHERE id = ?",
                                 (self._hash_password(password), user_id))
                    self.logger.info(f"Migrated legacy password for user: {user_id}")

            if not valid:
                self.logger.warning(f"Invalid password for user: {user_id}")
                raise InvalidPasswordError("Wrong password")

            token = self._generate_token()
            conn.execute("UPDATE users SET session_token = ? WHERE id = ?", (token, user_id))
            conn.commit()

            user = self._row_to_user(row).with_changes(token=token)

        self.logger.info(f"User authenticated: {user_id}")
        return user

    def verify(self, user_id: str, token: str) -> User:
        """
        Check an (id, token) pair

        Raises:
            SessionExpiredError: Missing token or no matching row
        """
        if not token:
            raise SessionExpiredError("No token")

        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE id = ? AND session_token = ?", (user_id, token)
            ).fetchone()

        if row is None:
            raise SessionExpiredError("Session expired")
        return self._row_to_user(row)

    def update(self, user: Dict[str, Any]) -> None:
        """
        Rewrite profile fields and credits

        Args:
            user: Wire-form user; when it carries a token the token must match

        Raises:
            UserNotFoundError: Unknown id
            SessionExpiredError: Token supplied but stale
        """
        user_id = user.get("id")
        with closing(self._connect()) as conn:
            row = self._get_row(conn, user_id) if user_id else None
            if row is None:
                raise UserNotFoundError("Account does not exist")

            token = user.get("token")
            if token and token != row["session_token"]:
                raise SessionExpiredError("Session expired")

            conn.execute("""
                UPDATE users SET username = ?, avatar = ?, name_color = ?, credits = ?
                WHERE id = ?
            """, (user.get("username") or row["username"],
                  user.get("avatar") if user.get("avatar") is not None else row["avatar"],
                  user.get("nameColor") if user.get("nameColor") is not None else row["name_color"],
                  int(user["credits"]) if user.get("credits") is not None else row["credits"],
                  user_id))
            conn.commit()

        self.logger.debug(f"User updated: {user_id}")

    def insert_legacy_user(self, user: Dict[str, Any], plaintext_password: str) -> None:
        """Store a row the way pre-hashing deployments did (plaintext password)"""
        with closing(self._connect()) as conn:
            conn.execute("""
                INSERT INTO users (id, username, password, avatar, color, name_color, credits, session_token)
                VALUES (?, ?, ?, ?, ?, ?, ?, NULL)
            """, (user["id"], user["username"], plaintext_password, user.get("avatar", ""),
                  user.get("color", ""), user.get("nameColor"), int(user.get("credits", 0))))
            conn.commit()

    def get_stored_password(self, user_id: str) -> Optional[str]:
        with closing(self._connect()) as conn:
            row = self._get_row(conn, user_id)
        return row["password"] if row else None


# Global user repository instance
_user_repository: Optional[UserRepository] = None


def get_user_repository() -> UserRepository:
    """Get the global user repository instance"""
    global _user_repository
    if _user_repository is None:
        _user_repository = UserRepository()
    return _user_repository

"""SQLite storage for users, refresh tokens and videos."""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        password TEXT NOT NULL,
        email TEXT UNIQUE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS refresh_tokens (
        token TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        revoked_at TIMESTAMP,
        user_id TEXT NOT NULL,
        expires_at TIMESTAMP NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS videos (
        id TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        title TEXT NOT NULL,
        description TEXT,
        thumbnail_url TEXT,
        video_url TEXT TEXT,
        user_id INTEGER,
        FOREIGN KEY(user_id) REFERENCES users(id)
    )
    """,
)

_VIDEO_COLUMNS = (
    "id, created_at, updated_at, title, description, thumbnail_url, video_url, user_id"
)


def _parse_timestamp(value: Any) -> datetime | None:
    """Turn a stored timestamp into an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    """Render a datetime as a UTC string in the form SQLite itself uses."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class User:
    """A registered user."""

    id: uuid.UUID
    email: str
    password: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "email": self.email,
            "password": self.password,
        }


@dataclass
class Video:
    """Metadata for an uploaded video."""

    id: uuid.UUID
    title: str
    description: str | None
    user_id: uuid.UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None
    thumbnail_url: str | None = None
    video_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "thumbnail_url": self.thumbnail_url,
            "video_url": self.video_url,
            "title": self.title,
            "description": self.description,
            "user_id": str(self.user_id),
        }


@dataclass
class RefreshToken:
    """A refresh token issued to a user."""

    token: str
    user_id: uuid.UUID
    expires_at: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None
    revoked_at: datetime | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "user_id": str(self.user_id),
            "expires_at": _iso(self.expires_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "revoked_at": _iso(self.revoked_at),
        }


class Client:
    """Database client; opens the file and creates missing tables."""

    def __init__(self, path_to_db: str) -> None:
        self._conn = sqlite3.connect(
            path_to_db, check_same_thread=False, isolation_level=None
        )
        self._migrate()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _migrate(self) -> None:
        for statement in _SCHEMA:
            self._conn.execute(statement)

    def close(self) -> None:
        self._conn.close()

    def reset(self) -> None:
        """Delete every row of every table."""
        for table in ("refresh_tokens", "users", "videos"):
            self._conn.execute(f"DELETE FROM {table}")

    # Refresh tokens

    def create_refresh_token(
        self, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> RefreshToken | None:
        self._conn.execute(
            """
            INSERT INTO refresh_tokens (token, created_at, updated_at, user_id, expires_at)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (token, str(user_id), _format_timestamp(expires_at)),
        )
        return self.get_refresh_token(token)

    def revoke_refresh_token(self, token: str) -> None:
        self._conn.execute(
            "UPDATE refresh_tokens SET revoked_at = CURRENT_TIMESTAMP WHERE token = ?",
            (token,),
        )

    def get_refresh_token(self, token: str) -> RefreshToken | None:
        row = self._conn.execute(
            """
            SELECT token, created_at, updated_at, user_id, expires_at, revoked_at
            FROM refresh_tokens WHERE token = ?
            """,
            (token,),
        ).fetchone()
        if row is None:
            return None
        value, created, updated, user_id, expires, revoked = row
        return RefreshToken(
            token=value,
            user_id=uuid.UUID(user_id),
            expires_at=_parse_timestamp(expires),
            created_at=_parse_timestamp(created),
            updated_at=_parse_timestamp(updated),
            revoked_at=_parse_timestamp(revoked),
        )

    def delete_refresh_token(self, token: str) -> None:
        self._conn.execute("DELETE FROM refresh_tokens WHERE token = ?", (token,))

    # Users

    def get_users(self) -> list[User]:
        rows = self._conn.execute("SELECT id, email FROM users").fetchall()
        return [User(id=uuid.UUID(user_id), email=email) for user_id, email in rows]

    def _user_from_row(self, row: tuple | None) -> User | None:
        if row is None:
            return None
        user_id, created, updated, email, password = row
        return User(
            id=uuid.UUID(user_id),
            email=email,
            password=password,
            created_at=_parse_timestamp(created),
            updated_at=_parse_timestamp(updated),
        )

    def get_user_by_email(self, email: str) -> User | None:
        row = self._conn.execute(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE email = ?",
            (email,),
        ).fetchone()
        return self._user_from_row(row)

    def get_user_by_refresh_token(self, token: str) -> User | None:
        row = self._conn.execute(
            """
            SELECT u.id, u.created_at, u.updated_at, u.email, u.password
            FROM users u
            JOIN refresh_tokens rt ON u.id = rt.user_id
            WHERE rt.token = ?
            """,
            (token,),
        ).fetchone()
        return self._user_from_row(row)

    def create_user(self, email: str, password: str) -> User | None:
        """Insert a user; raises sqlite3.IntegrityError if the email is taken."""
        user_id = uuid.uuid4()
        self._conn.execute(
            """
            INSERT INTO users (id, created_at, updated_at, email, password)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (str(user_id), email, password),
        )
        return self.get_user(user_id)

    def get_user(self, user_id: uuid.UUID) -> User | None:
        row = self._conn.execute(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE id = ?",
            (str(user_id),),
        ).fetchone()
        return self._user_from_row(row)

    def delete_user(self, user_id: uuid.UUID) -> None:
        self._conn.execute("DELETE FROM users WHERE id = ?", (str(user_id),))

    # Videos

    @staticmethod
    def _video_from_row(row: tuple) -> Video:
        video_id, created, updated, title, description, thumb, url, user_id = row
        return Video(
            id=uuid.UUID(str(video_id)),
            title=title,
            description=description,
            user_id=uuid.UUID(str(user_id)),
            created_at=_parse_timestamp(created),
            updated_at=_parse_timestamp(updated),
            thumbnail_url=thumb,
            video_url=url,
        )

    def get_videos(self, user_id: uuid.UUID) -> list[Video]:
        rows = self._conn.execute(
            f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE user_id = ? "
            "ORDER BY created_at DESC",
            (str(user_id),),
        ).fetchall()
        return [self._video_from_row(row) for row in rows]

    def create_video(
        self, title: str, description: str, user_id: uuid.UUID
    ) -> Video | None:
        video_id = uuid.uuid4()
        self._conn.execute(
            """
            INSERT INTO videos (id, created_at, updated_at, title, description, user_id)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?, ?)
            """,
            (str(video_id), title, description, str(user_id)),
        )
        return self.get_video(video_id)

    def get_video(self, video_id: uuid.UUID) -> Video | None:
        row = self._conn.execute(
            f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE id = ?", (str(video_id),)
        ).fetchone()
        return self._video_from_row(row) if row is not None else None

    def update_video(self, video: Video) -> None:
        self._conn.execute(
            """
            UPDATE videos
            SET title = ?, description = ?, thumbnail_url = ?, video_url = ?, user_id = ?
            WHERE id = ?
            """,
            (
                video.title,
                video.description,
                video.thumbnail_url,
                video.video_url,
                str(video.user_id),
                str(video.id),
            ),
        )

    def delete_video(self, video_id: uuid.UUID) -> None:
        self._conn.execute("DELETE FROM videos WHERE id = ?", (str(video_id),))
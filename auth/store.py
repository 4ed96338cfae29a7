"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_session are the mappers.
Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database, not by the existence check in
  AuthService.register(). Two concurrent registrations can both pass the
  check; only one insert survives and the other raises IntegrityError.

Validation:
  Writes that pass validate=True must leave name, email and hashed_password
  non-empty. The otp/otp_expires pairing is checked on every write,
  validate=False included -- that flag only relaxes the required-field rules
  (resend-OTP uses it because it only touches the otp columns).

Timestamps:
  otp_expires and session expires_at are stored as naive UTC DateTime values
  (SQLite has no timezone type) and converted back to aware UTC datetimes in
  the mappers.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.errors import ValidationError
from auth.models import Session, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("otp", String(16)),  # NULL unless a verification is pending
    Column("otp_expires", DateTime),  # naive UTC, paired with otp
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(64), primary_key=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", DateTime, nullable=False),  # naive UTC
)

# Columns a caller may change through update_by_id(). email and id are immutable.
_MUTABLE_FIELDS = {"name", "hashed_password", "otp", "otp_expires"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_db_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _validate(user: User, full: bool) -> None:
    """Raise ValidationError if the record is not fit to persist."""
    if (user.otp is None) != (user.otp_expires is None):
        raise ValidationError("OTP and its expiry must be set or cleared together.")
    if not full:
        return
    missing = [f for f in ("name", "email", "hashed_password") if not getattr(user, f)]
    if missing:
        raise ValidationError(f"Missing required user fields: {', '.join(missing)}.")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Session entities.

    Usage:
        store = UserStore("sqlite:///accountgate.db")
        user = store.create(User(name="Ann", email="ann@example.com", hashed_password=hash_password("s3cret!pw")))
        store.find_by_email("ann@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def create(self, user: User) -> User:
        """Insert a new user and return it with id and created_at assigned.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        AuthService treats that as a lost registration race [UNIQUE(email)].
        """
        _validate(user, full=True)
        created_at = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    otp=user.otp,
                    otp_expires=_to_db_time(user.otp_expires),
                    created_at=created_at,
                )
            )
            conn.commit()
            user_id = result.inserted_primary_key[0]
        return User(
            id=user_id,
            name=user.name,
            email=user.email,
            hashed_password=user.hashed_password,
            otp=user.otp,
            otp_expires=user.otp_expires,
            created_at=created_at,
        )

    def update_by_id(self, user_id: int, fields: dict, validate: bool = True) -> User | None:
        """Apply fields to an existing user and return the updated record.

        Accepted fields: name, hashed_password, otp, otp_expires.
        Unknown keys raise ValueError rather than being silently ignored.

        Returns None if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        current = self.find_by_id(user_id)
        if current is None:
            return None
        for key, value in fields.items():
            setattr(current, key, value)
        _validate(current, full=validate)
        values = dict(fields)
        if "otp_expires" in values:
            values["otp_expires"] = _to_db_time(values["otp_expires"])
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        if result.rowcount == 0:
            # Deleted between the read and the write.
            return None
        return current

    def save(self, user: User, validate: bool = True) -> None:
        """Persist every mutable field of an already-loaded user."""
        if user.id is None:
            raise ValueError("save() requires a persisted user; use create() for new records.")
        _validate(user, full=validate)
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user.id)
                .values(
                    name=user.name,
                    hashed_password=user.hashed_password,
                    otp=user.otp,
                    otp_expires=_to_db_time(user.otp_expires),
                )
            )
            conn.commit()

    def consume_otp(self, user_id: int, otp: str, now: datetime) -> bool:
        """Clear the pending OTP if it still equals otp and has not expired.

        The check and the clear are one UPDATE statement, so a code can only
        be consumed once and a concurrent resend that replaced it makes this
        return False. Returns True if a row was updated.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(
                    (_users.c.id == user_id)
                    & (_users.c.otp == otp)
                    & (_users.c.otp_expires > _to_db_time(now))
                )
                .values(otp=None, otp_expires=None)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_by_id(self, user_id: int) -> User | None:
        """Permanently delete a user and its sessions. Returns the removed user, or None."""
        with self.engine.begin() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                return None
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
        if result.rowcount == 0:
            return None
        return _row_to_user(row)

    # ------------------------------------------------------------------
    # Session records
    # ------------------------------------------------------------------

    def create_session(self, user_id: int, name: str, ttl_seconds: int, now: datetime) -> Session:
        """Insert a session record with a random 256-bit id and return it."""
        session = Session(
            id=secrets.token_urlsafe(32),
            user_id=user_id,
            name=name,
            created_at=now.isoformat(),
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session.id,
                    user_id=session.user_id,
                    name=session.name,
                    created_at=session.created_at,
                    expires_at=_to_db_time(session.expires_at),
                )
            )
            conn.commit()
        return session

    def get_session(self, session_id: str, now: datetime) -> Session | None:
        """Return the live session with this id, or None if unknown or expired."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _sessions.select().where(
                    (_sessions.c.id == session_id) & (_sessions.c.expires_at > _to_db_time(now))
                )
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_session(self, session_id: str) -> bool:
        """Remove a session record. Returns True if one was deleted."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.id == session_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        otp=row.otp,
        otp_expires=_from_db_time(row.otp_expires),
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        created_at=row.created_at,
        expires_at=_from_db_time(row.expires_at),
    )

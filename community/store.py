"""
community/store.py -- SQLAlchemy-backed persistence for profiles, mentors, and messages.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in community/models.py
remain the authoritative domain representation. Production points DATABASE_URL
at the identity provider's Postgres with the service role, which bypasses
row-level security; tests and local development use SQLite. Swapping one for
the other is a connection string change.

Pattern: Repository + Data Mapper. CommunityStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route handlers
and the provisioner never touch SQL directly.

List-valued fields (identities, languages, topics, ...) are stored as JSON
arrays serialized to text so the schema is identical on both backends.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CommunityStore("sqlite:///:memory:")
    store.upsert_profile(Profile(id=uid, email="a@x.com", chosen_name="Ari"))
    mentor_id = store.create_mentor(entry)
    mentors = store.list_mentors(query="pune")
    store.close()
"""

import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from community.models import MentorEntry, Message, Profile
from core.config import _DEFAULT_DB_URL

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_profiles = Table(
    "profiles",
    metadata,
    Column("id", String(64), primary_key=True),  # identity-provider account id
    Column("email", String(255), nullable=False),
    Column("chosen_name", String(255), nullable=False),
    Column("pronouns", String(100)),
    Column("identities", Text),  # JSON array serialized as text
    Column("looking_for", Text),  # JSON array serialized as text
    Column("role", String(20), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Column names for the gradient stops match the legacy camelCase table layout
# that deployed clients already read.
_mentors = Table(
    "mentors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("pronouns", String(100)),
    Column("city", String(100)),
    Column("languages", Text),  # JSON array
    Column("topics", Text),  # JSON array
    Column("bio", Text),
    Column("initials", String(2), nullable=False),
    Column("gradientFrom", String(16), nullable=False),
    Column("gradientTo", String(16), nullable=False),
    Column("verified", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("account_id", String(64)),  # NULL on legacy rows
    Column("created_at", String(32), nullable=False),
)

_messages = Table(
    "messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("sender_id", String(64), nullable=False),
    Column("mentor_id", Integer),
    Column("text", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

# Profile fields a user may change about themselves.
_PROFILE_MUTABLE = ("chosen_name", "pronouns", "identities", "looking_for")
_PROFILE_LIST_FIELDS = ("identities", "looking_for")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode on file-backed SQLite for concurrent reads."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _dump_list(values: Optional[list[str]]) -> str:
    return json.dumps(list(values or []))


def _load_list(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    try:
        values = json.loads(raw)
    except ValueError:
        return []
    return [str(v) for v in values] if isinstance(values, list) else []


def _row_to_profile(row) -> Profile:
    return Profile(
        id=row.id,
        email=row.email,
        chosen_name=row.chosen_name,
        pronouns=row.pronouns,
        identities=_load_list(row.identities),
        looking_for=_load_list(row.looking_for),
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_mentor(row) -> MentorEntry:
    return MentorEntry(
        id=row.id,
        name=row.name,
        pronouns=row.pronouns,
        city=row.city,
        languages=_load_list(row.languages),
        topics=_load_list(row.topics),
        bio=row.bio,
        initials=row.initials,
        gradient_from=row.gradientFrom,
        gradient_to=row.gradientTo,
        verified=bool(row.verified),
        is_verified=bool(row.is_verified),
        account_id=row.account_id,
        created_at=row.created_at,
    )


def _row_to_message(row) -> Message:
    return Message(
        id=row.id,
        sender_id=row.sender_id,
        mentor_id=row.mentor_id,
        text=row.text,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CommunityStore:
    """Repository for Profile, MentorEntry, and Message entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and "memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def upsert_profile(self, profile: Profile) -> Profile:
        """Insert the profile, or overwrite every field of an existing row.

        created_at survives an overwrite; updated_at is refreshed. Runs in a
        single transaction so a concurrent reader never sees a half-written row.
        """
        now = _now_iso()
        values = {
            "email": profile.email,
            "chosen_name": profile.chosen_name,
            "pronouns": profile.pronouns,
            "identities": _dump_list(profile.identities),
            "looking_for": _dump_list(profile.looking_for),
            "role": profile.role,
            "updated_at": now,
        }
        with self.engine.begin() as conn:
            exists = conn.execute(select(_profiles.c.id).where(_profiles.c.id == profile.id)).first()
            if exists is None:
                conn.execute(_profiles.insert().values(id=profile.id, created_at=now, **values))
            else:
                conn.execute(_profiles.update().where(_profiles.c.id == profile.id).values(**values))
            row = conn.execute(_profiles.select().where(_profiles.c.id == profile.id)).fetchone()
        return _row_to_profile(row)

    def get_profile(self, account_id: str) -> Optional[Profile]:
        """Look up a profile by account id. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_profiles.select().where(_profiles.c.id == account_id)).fetchone()
        return _row_to_profile(row) if row is not None else None

    def update_profile(self, account_id: str, **fields) -> Optional[Profile]:
        """Update user-editable fields on an existing profile.

        Accepted fields: chosen_name, pronouns, identities, looking_for.
        Fields whose value is unchanged are skipped, and a call that changes
        nothing writes nothing (updated_at included), so repeating an
        identical update leaves the row exactly as the first call did.

        Returns the stored profile, or None if account_id has no profile.
        """
        unknown = set(fields) - set(_PROFILE_MUTABLE)
        if unknown:
            raise ValueError(f"Unsupported profile fields: {sorted(unknown)}")

        with self.engine.begin() as conn:
            row = conn.execute(_profiles.select().where(_profiles.c.id == account_id)).fetchone()
            if row is None:
                return None
            current = _row_to_profile(row)
            changes = {
                name: (_dump_list(value) if name in _PROFILE_LIST_FIELDS else value)
                for name, value in fields.items()
                if getattr(current, name) != value
            }
            if not changes:
                return current
            conn.execute(
                _profiles.update().where(_profiles.c.id == account_id).values(updated_at=_now_iso(), **changes)
            )
            row = conn.execute(_profiles.select().where(_profiles.c.id == account_id)).fetchone()
        return _row_to_profile(row)

    # ------------------------------------------------------------------
    # Mentor directory
    # ------------------------------------------------------------------

    def create_mentor(self, entry: MentorEntry) -> int:
        """Insert a mentor directory entry and return its assigned ID."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _mentors.insert().values(
                    name=entry.name,
                    pronouns=entry.pronouns,
                    city=entry.city,
                    languages=_dump_list(entry.languages),
                    topics=_dump_list(entry.topics),
                    bio=entry.bio,
                    initials=entry.initials,
                    gradientFrom=entry.gradient_from,
                    gradientTo=entry.gradient_to,
                    verified=1 if entry.verified else 0,
                    is_verified=1 if entry.is_verified else 0,
                    account_id=entry.account_id,
                    created_at=_now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def get_mentor(self, mentor_id: int) -> Optional[MentorEntry]:
        with self.engine.connect() as conn:
            row = conn.execute(_mentors.select().where(_mentors.c.id == mentor_id)).fetchone()
        return _row_to_mentor(row) if row is not None else None

    def list_mentors(
        self,
        query: Optional[str] = None,
        topic: Optional[str] = None,
        verified_only: bool = False,
    ) -> list[MentorEntry]:
        """Return mentor entries ordered by name.

        query   -- case-insensitive substring match against name OR city.
        topic   -- exact membership in the entry's topics list.
        verified_only -- keep entries flagged under either verification field.

        topics is a JSON text column, so the topic predicate is applied to the
        decoded rows rather than in SQL.
        """
        stmt = _mentors.select()
        search = (query or "").strip().lower()
        if search:
            stmt = stmt.where(
                func.lower(_mentors.c.name).contains(search, autoescape=True)
                | func.lower(_mentors.c.city).contains(search, autoescape=True)
            )
        if verified_only:
            stmt = stmt.where((_mentors.c.verified == 1) | (_mentors.c.is_verified == 1))
        stmt = stmt.order_by(_mentors.c.name, _mentors.c.id)

        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        mentors = [_row_to_mentor(r) for r in rows]

        wanted_topic = (topic or "").strip()
        if wanted_topic:
            mentors = [m for m in mentors if wanted_topic in m.topics]
        return mentors

    def find_mentor_for_account(self, account_id: str, chosen_name: str) -> Optional[MentorEntry]:
        """Return the directory entry owned by an account.

        Entries created at signup carry account_id and match on it. Legacy
        entries (account_id NULL) fall back to exact name equality, which is
        ambiguous when two mentors share a name: the oldest entry wins.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _mentors.select().where(_mentors.c.account_id == account_id).order_by(_mentors.c.id)
            ).first()
            if row is None:
                row = conn.execute(
                    _mentors.select()
                    .where(_mentors.c.account_id.is_(None) & (_mentors.c.name == chosen_name))
                    .order_by(_mentors.c.id)
                ).first()
        return _row_to_mentor(row) if row is not None else None

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def create_message(self, message: Message) -> Message:
        """Insert a message and return it with id and created_at populated."""
        created_at = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _messages.insert().values(
                    sender_id=message.sender_id,
                    mentor_id=message.mentor_id,
                    text=message.text,
                    created_at=created_at,
                )
            )
            message_id = result.inserted_primary_key[0]
        return Message(
            id=message_id,
            sender_id=message.sender_id,
            mentor_id=message.mentor_id,
            text=message.text,
            created_at=created_at,
        )

    def get_message(self, message_id: int) -> Optional[Message]:
        with self.engine.connect() as conn:
            row = conn.execute(_messages.select().where(_messages.c.id == message_id)).fetchone()
        return _row_to_message(row) if row is not None else None

    def list_messages(self, mentor_id: Optional[int] = None) -> list[Message]:
        """Return messages oldest first, optionally restricted to one mentor thread."""
        stmt = _messages.select()
        if mentor_id is not None:
            stmt = stmt.where(_messages.c.mentor_id == mentor_id)
        stmt = stmt.order_by(_messages.c.created_at, _messages.c.id)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_message(r) for r in rows]

    def delete_message(self, message_id: int, sender_id: str) -> bool:
        """Delete a message only if sender_id wrote it.

        The ownership check is part of the WHERE clause, so a caller cannot
        delete another user's message even if it knows the id. Returns True
        if a row was deleted.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _messages.delete().where((_messages.c.id == message_id) & (_messages.c.sender_id == sender_id))
            )
            deleted = result.rowcount
        return deleted > 0

    def close(self) -> None:
        self.engine.dispose()

"""Unit tests for community/store.py -- CommunityStore against in-memory SQLite.

Covers:
- Profile upsert keeps created_at and overwrites every other field
- update_profile: partial updates, idempotence, unknown fields, missing rows
- Mentor directory: ordering, name/city search, topic filter, verified filter
- Mentor lookup by account id with the legacy name fallback
- Messages: ordering, thread filter, owner-only delete
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from community.models import MentorEntry, Message, Profile


def _profile(**overrides) -> Profile:
    fields = dict(
        id="acct-1",
        email="ari@example.com",
        chosen_name="Ari",
        pronouns="they/them",
        identities=["Non-binary"],
        looking_for=["Peer support"],
    )
    fields.update(overrides)
    return Profile(**fields)


def _mentor(name: str, **overrides) -> MentorEntry:
    fields = dict(
        name=name,
        initials=name[:1].upper(),
        gradient_from="#f472b6",
        gradient_to="#7c3aed",
        city="Pune",
        languages=["English"],
        topics=["Coming out"],
    )
    fields.update(overrides)
    return MentorEntry(**fields)


class TestProfiles:
    def test_upsert_inserts_then_overwrites(self, store) -> None:
        first = store.upsert_profile(_profile())
        second = store.upsert_profile(_profile(chosen_name="Ari B", identities=[], role="mentor"))

        assert second.created_at == first.created_at
        assert second.chosen_name == "Ari B"
        assert second.identities == []
        assert second.role == "mentor"
        assert store.get_profile("acct-1") == second

    def test_get_missing_profile(self, store) -> None:
        assert store.get_profile("nobody") is None

    def test_list_fields_round_trip(self, store) -> None:
        stored = store.upsert_profile(_profile(identities=["Trans woman", "Queer"]))
        assert stored.identities == ["Trans woman", "Queer"]
        assert stored.looking_for == ["Peer support"]

    def test_update_changes_only_given_fields(self, store) -> None:
        store.upsert_profile(_profile())
        updated = store.update_profile("acct-1", pronouns="she/her")

        assert updated.pronouns == "she/her"
        assert updated.chosen_name == "Ari"
        assert updated.identities == ["Non-binary"]

    def test_identical_update_writes_nothing(self, store) -> None:
        store.upsert_profile(_profile())
        once = store.update_profile("acct-1", chosen_name="Robin", looking_for=["Mentors"])
        twice = store.update_profile("acct-1", chosen_name="Robin", looking_for=["Mentors"])

        assert twice == once
        assert twice.updated_at == once.updated_at

    def test_update_missing_profile_returns_none(self, store) -> None:
        assert store.update_profile("nobody", chosen_name="X") is None

    def test_update_rejects_unknown_fields(self, store) -> None:
        store.upsert_profile(_profile())
        with pytest.raises(ValueError, match="role"):
            store.update_profile("acct-1", role="mentor")


class TestMentorDirectory:
    @pytest.fixture
    def directory(self, store):
        store.create_mentor(_mentor("Kai Ito", city="Pune", topics=["Coming out", "Family"], verified=True))
        store.create_mentor(_mentor("Ari", city="Mumbai", topics=["Hormones"]))
        store.create_mentor(_mentor("Jordan Lee", city="Delhi", topics=["Family"], is_verified=True))
        return store

    def test_list_is_ordered_by_name(self, directory) -> None:
        assert [m.name for m in directory.list_mentors()] == ["Ari", "Jordan Lee", "Kai Ito"]

    def test_create_returns_id_and_stores_fields(self, store) -> None:
        mentor_id = store.create_mentor(_mentor("Sam", languages=["Hindi", "English"], account_id="acct-9"))
        entry = store.get_mentor(mentor_id)

        assert entry.id == mentor_id
        assert entry.languages == ["Hindi", "English"]
        assert entry.account_id == "acct-9"
        assert entry.verified is False
        assert entry.created_at

    def test_get_missing_mentor(self, store) -> None:
        assert store.get_mentor(999) is None

    @pytest.mark.parametrize(
        "query, expected",
        [
            ("kai", ["Kai Ito"]),
            ("MUM", ["Ari"]),
            ("lee", ["Jordan Lee"]),
            ("e", ["Jordan Lee", "Kai Ito"]),
        ],
    )
    def test_search_matches_name_or_city(self, directory, query, expected) -> None:
        assert [m.name for m in directory.list_mentors(query=query)] == expected

    def test_search_treats_wildcards_literally(self, directory) -> None:
        assert directory.list_mentors(query="%") == []

    def test_topic_is_exact_membership(self, directory) -> None:
        assert [m.name for m in directory.list_mentors(topic="Family")] == ["Jordan Lee", "Kai Ito"]
        assert directory.list_mentors(topic="family") == []

    def test_query_and_topic_combine(self, directory) -> None:
        assert [m.name for m in directory.list_mentors(query="delhi", topic="Family")] == ["Jordan Lee"]

    def test_verified_accepts_either_flag(self, directory) -> None:
        assert [m.name for m in directory.list_mentors(verified_only=True)] == ["Jordan Lee", "Kai Ito"]


class TestMentorOwnership:
    def test_match_by_account_id(self, store) -> None:
        store.create_mentor(_mentor("Kai Ito"))
        linked_id = store.create_mentor(_mentor("Kai Ito", account_id="acct-1"))

        assert store.find_mentor_for_account("acct-1", "Kai Ito").id == linked_id

    def test_legacy_row_matched_by_name(self, store) -> None:
        legacy_id = store.create_mentor(_mentor("Kai Ito"))
        assert store.find_mentor_for_account("acct-1", "Kai Ito").id == legacy_id

    def test_linked_row_of_another_account_is_not_claimed_by_name(self, store) -> None:
        store.create_mentor(_mentor("Kai Ito", account_id="acct-2"))
        assert store.find_mentor_for_account("acct-1", "Kai Ito") is None

    def test_no_match(self, store) -> None:
        assert store.find_mentor_for_account("acct-1", "Nobody") is None


class TestMessages:
    def test_create_populates_id_and_timestamp(self, store) -> None:
        message = store.create_message(Message(sender_id="acct-1", text="hello"))
        assert message.id is not None
        assert message.created_at
        assert store.get_message(message.id) == message

    def test_list_is_oldest_first(self, store) -> None:
        for n in range(3):
            store.create_message(Message(sender_id="acct-1", text=f"m{n}"))
        assert [m.text for m in store.list_messages()] == ["m0", "m1", "m2"]

    def test_list_orders_by_created_at(self, store) -> None:
        late = store.create_message(Message(sender_id="acct-1", text="late"))
        early = store.create_message(Message(sender_id="acct-1", text="early"))
        with store.engine.begin() as conn:
            conn.execute(
                text("UPDATE messages SET created_at = :ts WHERE id = :id"),
                {"ts": "2000-01-01T00:00:00+00:00", "id": early.id},
            )
        assert [m.id for m in store.list_messages()] == [early.id, late.id]

    def test_filter_by_mentor_thread(self, store) -> None:
        store.create_message(Message(sender_id="acct-1", text="general"))
        store.create_message(Message(sender_id="acct-1", text="to kai", mentor_id=7))
        assert [m.text for m in store.list_messages(mentor_id=7)] == ["to kai"]

    def test_only_sender_can_delete(self, store) -> None:
        message = store.create_message(Message(sender_id="acct-1", text="mine"))

        assert store.delete_message(message.id, "acct-2") is False
        assert store.get_message(message.id) is not None
        assert store.delete_message(message.id, "acct-1") is True
        assert store.get_message(message.id) is None

    def test_delete_missing_message(self, store) -> None:
        assert store.delete_message(12345, "acct-1") is False

import random

import pytest

from relay.directory import Directory


@pytest.fixture
def directory(clock):
    return Directory(clock=clock, rng=random.Random(7))


def test_register_binds_both_directions(directory):
    user = directory.register("sid-a", "a", "Alice")

    assert user.is_online is True
    assert directory.resolve_user("sid-a") is user
    assert directory.connection_for("a") == "sid-a"
    assert len(directory) == 1


def test_register_again_updates_record_in_place(directory, clock):
    first = directory.register("sid-a", "a", "Alice")
    directory.mark_offline("sid-a")
    clock.advance(seconds=30)

    second = directory.register("sid-a2", "a", "Alicia")

    assert second is first
    assert second.username == "Alicia"
    assert second.is_online is True
    assert second.last_seen == clock.now


def test_newest_connection_wins(directory):
    directory.register("sid-old", "a", "Alice")
    directory.register("sid-new", "a", "Alice")

    assert directory.resolve_user("sid-old") is None
    assert directory.resolve_user("sid-new").id == "a"
    assert directory.connection_for("a") == "sid-new"


def test_rebinding_connection_to_other_user_drops_stale_binding(directory):
    directory.register("sid-1", "a", "Alice")
    directory.register("sid-1", "b", "Bob")

    assert directory.resolve_user("sid-1").id == "b"
    assert directory.connection_for("a") is None


def test_mark_offline_keeps_user_record(directory, clock):
    directory.register("sid-a", "a", "Alice")
    clock.advance(minutes=1)

    user = directory.mark_offline("sid-a")

    assert user.is_online is False
    assert user.last_seen == clock.now
    assert directory.resolve_user("sid-a") is None
    assert directory.connection_for("a") is None
    assert directory.get("a") is user


def test_mark_offline_unknown_connection(directory):
    assert directory.mark_offline("nobody") is None


def test_remove_deletes_everything(directory):
    directory.register("sid-a", "a", "Alice")

    removed = directory.remove("a")

    assert removed.id == "a"
    assert "a" not in directory
    assert directory.resolve_user("sid-a") is None
    assert directory.connection_for("a") is None
    assert directory.remove("a") is None


def test_search_is_case_insensitive_substring(directory):
    directory.register("s1", "a", "Alice")
    directory.register("s2", "b", "Bob")
    directory.register("s3", "c", "Alina")
    directory.register("s4", "me", "ALIsearcher")

    found = directory.search("ali", excluding_user_id="me")

    assert [u.username for u in found] == ["Alice", "Alina"]


def test_search_skips_offline_users(directory):
    directory.register("s1", "a", "Alice")
    directory.register("s2", "b", "Alina")
    directory.mark_offline("s2")

    assert [u.id for u in directory.search("ali")] == ["a"]


def test_search_is_capped(clock):
    directory = Directory(clock=clock)
    for i in range(15):
        directory.register(f"s{i}", f"u{i}", f"user{i}")

    found = directory.search("user")

    assert len(found) == 10
    assert [u.id for u in found] == [f"u{i}" for i in range(10)]


def test_pick_random_online_excludes_caller_and_offline(directory):
    directory.register("s1", "me", "Me")
    directory.register("s2", "b", "Bob")
    directory.register("s3", "c", "Carol")
    directory.mark_offline("s3")

    for _ in range(20):
        assert directory.pick_random_online(excluding_user_id="me").id == "b"


def test_pick_random_online_without_candidates(directory):
    directory.register("s1", "me", "Me")

    assert directory.pick_random_online(excluding_user_id="me") is None


def test_connection_taken_by_other_user_marks_previous_offline(directory, clock):
    alice = directory.register("sid-x", "a", "Alice")
    clock.advance(seconds=10)

    directory.register("sid-x", "b", "Bob")

    assert alice.is_online is False
    assert alice.last_seen == clock.now
    assert directory.search("", excluding_user_id="b") == []

    directory.mark_offline("sid-x")
    directory.register("sid-y", "c", "Carol")
    assert directory.search("", excluding_user_id="c") == []
    assert directory.pick_random_online(excluding_user_id="c") is None

import pytest

from conftest import by_event, events_for
from core.membership import MembershipManager


@pytest.fixture
def members(state):
    return MembershipManager(state)


def assert_host_invariant(state):
    for room in state.rooms:
        hosts = [m.connection_id for m in room.members.values() if m.is_host]
        if room.host is None:
            assert hosts == []
        else:
            assert room.host in room.members
            assert hosts == [room.host]
            assert state.connections.lookup(room.host).is_host is True


def test_first_joiner_as_host_gets_snapshot(state, members):
    deliveries = members.join("a", "X1", "Alice", True)

    (snapshot,) = by_event(deliveries, "room-state")
    assert snapshot.recipients == ("a",)
    assert snapshot.payload["host"] == "a"
    assert snapshot.payload["isPlaying"] is False
    assert snapshot.payload["currentTime"] == 0
    assert snapshot.payload["videoUrl"] == ""
    assert [m["connectionId"] for m in snapshot.payload["members"]] == ["a"]
    assert snapshot.payload["members"][0]["isHost"] is True
    assert_host_invariant(state)


def test_second_joiner_with_lowercase_code_lands_in_same_room(state, members):
    members.join("a", "X1", "Alice", True)
    deliveries = members.join("b", "x1", "Bob", False)

    assert len(state.rooms) == 1
    assert set(state.rooms.get("X1").members) == {"a", "b"}

    assert events_for(deliveries, "a")[0] == ("user-joined", {"connectionId": "b", "name": "Bob", "isHost": False})
    (roster,) = by_event(deliveries, "room-members")
    assert set(roster.recipients) == {"a", "b"}
    assert len(roster.payload) == 2

    # joiner never gets its own user-joined
    assert "user-joined" not in [event for event, _ in events_for(deliveries, "b")]
    assert [event for event, _ in events_for(deliveries, "b")] == ["room-state", "room-members"]
    assert_host_invariant(state)


def test_no_host_requested_first_joiner_still_becomes_host(state, members):
    members.join("a", "R", "Alice", False)
    members.join("b", "R", "Bob", False)
    assert state.rooms.get("R").host == "a"
    assert_host_invariant(state)


def test_explicit_host_request_takes_over(state, members):
    members.join("a", "R", "Alice", True)
    deliveries = members.join("b", "R", "Bob", True)

    room = state.rooms.get("R")
    assert room.host == "b"
    assert room.members["a"].is_host is False
    assert state.connections.lookup("a").is_host is False
    assert by_event(deliveries, "user-joined")[0].payload["isHost"] is True
    assert_host_invariant(state)


def test_blank_name_gets_default(members, state):
    members.join("0123456789abcdef", "R", "   ", False)
    assert state.rooms.get("R").members["0123456789abcdef"].name == "User_01234567"


def test_host_leaves_first_remaining_member_promoted(state, members):
    members.join("a", "X1", "Alice", True)
    members.join("b", "X1", "Bob", False)
    members.join("c", "X1", "Cara", False)

    deliveries = members.leave("a")

    room = state.rooms.get("X1")
    assert room is not None
    assert room.host == "b"
    assert room.members["b"].is_host is True

    (promotion,) = by_event(deliveries, "host-changed")
    assert promotion.recipients == ("b",)
    assert promotion.payload == {"newHostId": "b", "isHost": True}

    (left,) = by_event(deliveries, "user-left")
    assert set(left.recipients) == {"b", "c"}
    assert left.payload == {"connectionId": "a", "name": "Alice"}
    assert len(by_event(deliveries, "room-members")[0].payload) == 2
    assert state.connections.lookup("a") is None
    assert_host_invariant(state)


def test_non_host_leaving_does_not_change_host(state, members):
    members.join("a", "X1", "Alice", True)
    members.join("b", "X1", "Bob", False)
    deliveries = members.leave("b")
    assert state.rooms.get("X1").host == "a"
    assert by_event(deliveries, "host-changed") == []


def test_last_member_leaving_deletes_room_and_rejoin_is_fresh(state, members):
    members.join("b", "X1", "Bob", False)
    room = state.rooms.get("X1")
    room.video_url = "https://example.com/v.mp4"
    room.is_playing = True
    room.current_time = 42.0

    deliveries = members.leave("b")
    assert deliveries == []
    assert state.rooms.get("X1") is None

    snapshot = by_event(members.join("c", "x1", "Cara", False), "room-state")[0].payload
    assert snapshot["isPlaying"] is False
    assert snapshot["currentTime"] == 0
    assert snapshot["videoUrl"] == ""
    assert snapshot["host"] == "c"


def test_leave_unknown_connection_is_noop(members):
    assert members.leave("ghost") == []


def test_join_another_room_leaves_the_first(state, members):
    members.join("a", "ONE", "Alice", True)
    members.join("b", "ONE", "Bob", False)
    deliveries = members.join("a", "TWO", "Alice", False)

    assert state.rooms.get("ONE").host == "b"
    assert "a" not in state.rooms.get("ONE").members
    assert state.rooms.get("TWO").host == "a"
    assert state.connections.lookup("a").room_code == "TWO"
    assert by_event(deliveries, "host-changed")[0].recipients == ("b",)
    assert_host_invariant(state)


def test_rejoining_same_room_keeps_room_state(state, members):
    members.join("a", "R", "Alice", True)
    state.rooms.get("R").current_time = 10.0
    members.join("a", "r", "Alice", False)

    room = state.rooms.get("R")
    assert list(room.members) == ["a"]
    assert room.current_time == 10.0
    assert room.host == "a"


def test_members_request_is_private(members):
    members.join("a", "R", "Alice", True)
    members.join("b", "R", "Bob", False)
    (delivery,) = members.members("b", "r")
    assert delivery.event == "room-members"
    assert delivery.recipients == ("b",)
    assert [m["name"] for m in delivery.payload] == ["Alice", "Bob"]


def test_host_invariant_over_random_join_leave_sequence(state, members):
    script = [
        ("join", "a", True), ("join", "b", False), ("join", "c", True),
        ("leave", "c", None), ("join", "d", False), ("leave", "a", None),
        ("leave", "b", None), ("join", "e", True), ("leave", "d", None),
        ("leave", "e", None),
    ]
    for action, cid, wants_host in script:
        if action == "join":
            members.join(cid, "INV", cid.upper(), wants_host)
        else:
            members.leave(cid)
        assert_host_invariant(state)
    assert state.rooms.get("INV") is None

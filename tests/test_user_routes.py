from crowdguard.models.user import SEED_USERS, User
from crowdguard.services.user_service import seed_users


def test_create_user_then_fetch_existing(client, store):
    first = client.post("/api/users", json={"id": "u9", "name": "Dana"})
    again = client.post("/api/users", json={"id": "u9", "name": "Renamed"})

    assert first.status_code == 200
    assert first.json()["badges"] == ["Newcomer"]
    assert first.json()["points"] == 0
    assert again.json()["name"] == "Dana"
    assert len(store.users) == 1


def test_leaderboard_ranks_by_points(client, store):
    for i in range(12):
        store.put_user(User(id=f"u{i}", name=f"User {i}", points=i * 10))

    board = client.get("/api/leaderboard").json()

    assert len(board) == 10
    assert board[0]["id"] == "u11"
    assert [u["rank"] for u in board] == list(range(1, 11))


def test_seed_only_when_empty(store):
    assert seed_users(store) == len(SEED_USERS)
    assert seed_users(store) == 0
    assert {u.id for u in store.list_users()} == {"u1", "u2", "u3"}


def test_user_store_failure(client, store):
    store.fail = True

    resp = client.get("/api/leaderboard")

    assert resp.status_code == 500

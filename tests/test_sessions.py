import threading

from app.sessions import ServerSideSession, SessionStore


def test_store_round_trip_copies_data():
    store = SessionStore()
    token = store.new_token()
    data = {"user": {"id": 1}}

    store.put(token, data)
    data["user"] = None

    assert store.get(token) == {"user": {"id": 1}}
    assert store.get("missing") is None
    assert store.get(None) is None


def test_store_delete_is_idempotent():
    store = SessionStore()
    store.put("t", {"a": 1})

    assert store.delete("t") is True
    assert store.delete("t") is False
    assert store.delete(None) is False
    assert len(store) == 0


def test_tokens_are_unique_and_opaque():
    tokens = {SessionStore.new_token() for _ in range(100)}

    assert len(tokens) == 100
    assert all(len(token) >= 32 for token in tokens)


def test_session_tracks_modification_and_rotation():
    session = ServerSideSession({"user": {"id": 1}}, token="abc")
    assert not session.new
    assert not session.modified

    session["user"] = {"id": 2}
    assert session.modified

    session.rotate()
    assert session.token is None
    assert session.retired_token == "abc"


def test_store_is_thread_safe():
    store = SessionStore()

    def worker(prefix):
        for i in range(200):
            store.put(f"{prefix}-{i}", {"i": i})

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store) == 1600

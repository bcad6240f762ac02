"""Tests for session-scoped state and connection URLs."""

from urllib.parse import parse_qs, urlsplit

from rxgateway import Endpoint, ReorderBuffer, SessionState, Signal, SignalKind


def make_state(**kwargs) -> SessionState:
    state = SessionState(reorder_buffer=ReorderBuffer(16), **kwargs)
    return state.with_endpoint(Endpoint(url="wss://gw.test/ws?v=3", token="tok"))


def test_fresh_resets_session_scope():
    state = make_state(compression_enabled=False)
    state.session_id = "s1"
    state.next_expected_sequence = 42
    state.reorder_buffer.observe(42, _event(44))

    fresh = state.fresh()

    assert fresh.session_id is None
    assert fresh.next_expected_sequence == 0
    assert len(fresh.reorder_buffer) == 0
    assert fresh.reorder_buffer is not state.reorder_buffer
    assert fresh.reorder_buffer.capacity() == 16
    assert fresh.endpoint == "wss://gw.test/ws?v=3"
    assert fresh.auth_token == "tok"
    assert fresh.compression_enabled is False
    # source left untouched
    assert state.next_expected_sequence == 42


def test_resumable():
    state = make_state()
    assert not state.resumable
    state.session_id = "s1"
    assert state.resumable


def test_connection_url():
    params = parse_qs(urlsplit(make_state().connection_url()).query)
    assert params == {"v": ["3"], "token": ["tok"], "compress": ["1"]}


def test_connection_url_resume():
    state = make_state()
    state.session_id = "s1"
    state.next_expected_sequence = 7
    params = parse_qs(urlsplit(state.connection_url(resume=True)).query)
    assert params["resume"] == ["1"]
    assert params["sn"] == ["7"]
    assert params["session_id"] == ["s1"]


def test_resume_ignored_without_session():
    params = parse_qs(urlsplit(make_state().connection_url(resume=True)).query)
    assert "resume" not in params


def test_endpoint_repr_hides_token():
    assert "secret" not in repr(Endpoint(url="wss://x", token="secret"))


def test_session_state_repr_hides_token():
    assert "tok" not in repr(make_state())


def _event(sn):
    return Signal(kind=SignalKind.EVENT, code=0, sequence=sn)

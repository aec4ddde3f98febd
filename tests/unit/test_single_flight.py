from __future__ import annotations

from rag_agent_orchestrator.engine.single_flight import AlreadyRunning, SingleFlightGuard


def test_second_acquire_for_same_key_is_rejected() -> None:
    guard = SingleFlightGuard()

    assert guard.try_acquire("nightly") is True
    assert guard.try_acquire("nightly") is False
    assert guard.try_acquire("hourly") is True
    assert guard.is_running("nightly")


def test_release_allows_next_run() -> None:
    guard = SingleFlightGuard()
    guard.try_acquire("nightly")

    guard.release("nightly")

    assert not guard.is_running("nightly")
    assert guard.try_acquire("nightly") is True


def test_already_running_names_the_key() -> None:
    error = AlreadyRunning("nightly")

    assert error.key == "nightly"
    assert "nightly" in str(error)

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tombo.utils.cancellation import CancellationToken


@pytest.mark.unit
class TestCancellationToken:
    def test_initial_state(self) -> None:
        token = CancellationToken()
        assert token.is_cancellation_requested is False
        assert repr(token) == "CancellationToken(cancelled=False)"

    def test_cancel_runs_callbacks_once(self) -> None:
        token = CancellationToken()
        callback = MagicMock()
        token.on_cancelled(callback)

        token.cancel()
        token.cancel()

        assert token.is_cancellation_requested
        callback.assert_called_once_with()

    def test_callback_after_cancel_runs_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        callback = MagicMock()

        token.on_cancelled(callback)

        callback.assert_called_once_with()

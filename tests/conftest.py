from __future__ import annotations

import pytest
from support import RecordingAdapter

from turnkit.activity import Activity
from turnkit.context import TurnContext


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def make_context(adapter: RecordingAdapter):
    def _make(activity: Activity) -> TurnContext:
        return TurnContext(adapter, activity)

    return _make

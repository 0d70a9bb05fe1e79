from __future__ import annotations

import pytest

from fakes import RecordingSink


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()

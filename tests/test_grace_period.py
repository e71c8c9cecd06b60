"""Tests for grace period suppression."""
import pytest

from devicewatch.services.device_watch import DEFAULT_GRACE_PERIOD, grace_remaining, suppress

INSTALLED = 1_700_000_000


@pytest.mark.parametrize(
    "elapsed,expected",
    [
        (0, True),
        (DEFAULT_GRACE_PERIOD - 1, True),
        (DEFAULT_GRACE_PERIOD, False),
        (DEFAULT_GRACE_PERIOD + 1, False),
    ],
)
def test_boundary(elapsed, expected):
    assert suppress(INSTALLED + elapsed, INSTALLED, DEFAULT_GRACE_PERIOD) is expected


def test_clock_before_install_still_suppresses():
    assert suppress(INSTALLED - 5, INSTALLED, DEFAULT_GRACE_PERIOD) is True


def test_zero_grace_never_suppresses():
    assert suppress(INSTALLED, INSTALLED, 0) is False


def test_grace_remaining():
    assert grace_remaining(INSTALLED, INSTALLED, 100) == 100
    assert grace_remaining(INSTALLED + 40, INSTALLED, 100) == 60
    assert grace_remaining(INSTALLED + 500, INSTALLED, 100) == 0

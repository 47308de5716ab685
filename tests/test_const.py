"""Unit tests for the polling interval options."""
from datetime import timedelta

import pytest

from custom_components.fitbark.const import DEFAULT_POLL_INTERVAL, PollingInterval


class TestPollingInterval:
    """Options stored in the config entry."""

    @pytest.mark.parametrize(
        "interval,label",
        [
            (PollingInterval.NEVER, "Never (disable automatic updates)"),
            (PollingInterval.EVERY_1_MINUTE, "Every minute"),
            (PollingInterval.EVERY_30_MINUTES, "Every 30 minutes"),
            (PollingInterval.EVERY_1_HOUR, "Every hour"),
            (PollingInterval.EVERY_3_HOURS, "Every 3 hours"),
        ],
    )
    def test_labels(self, interval, label):
        assert interval.label == label

    def test_never_has_no_interval(self):
        assert PollingInterval.NEVER.interval is None
        assert PollingInterval.EVERY_15_MINUTES.interval == timedelta(minutes=15)

    def test_from_option(self):
        assert PollingInterval.from_option("every_5_minutes") is PollingInterval.EVERY_5_MINUTES
        assert PollingInterval.from_option("never") is PollingInterval.NEVER

    def test_unknown_option_falls_back_to_default(self):
        assert PollingInterval.from_option(None) is DEFAULT_POLL_INTERVAL
        assert PollingInterval.from_option("every_7_minutes") is DEFAULT_POLL_INTERVAL

"""Relay state enumeration."""
from enum import Enum


class RelayState(Enum):
    """Whether the snapshot is driven by the simulator or by a real device."""
    DEMO = "demo"  # No device attached, simulator running
    LIVE = "live"  # Device attached, simulator suppressed

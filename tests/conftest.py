# tests/conftest.py
"""
Shared fixtures, mock device events and catalog layouts for the
triggerexpr test-suite.
"""

import enum

import pytest

from triggerexpr.catalog import EventTypeTag
from triggerexpr.state import SharedState


# ---------------------------------------------------------------------------
# Mock device events
#
# Class names match the device library's, so EventTypeTag.of() classifies
# them by MRO.  Members are kept in a dict and every successful read is
# recorded in ``accessed`` so tests can see which extractions ran.
# ---------------------------------------------------------------------------

class DeviceUpdate:

    def __init__(self, **members):
        self.__dict__["_members"] = dict(members)
        self.__dict__["accessed"] = []

    def __getattr__(self, name):
        members = self.__dict__.get("_members", {})
        if name not in members:
            raise AttributeError(name)
        self.__dict__["accessed"].append(name)
        return members[name]

    def __repr__(self):
        return f"<{type(self).__name__} {self._members!r}>"


class Beat(DeviceUpdate):
    pass


class MixerStatus(DeviceUpdate):
    pass


class CdjStatus(DeviceUpdate):

    def format_cue_countdown(self):
        countdown = self.cue_countdown
        if countdown == 511:
            return "--.-"
        return f"{countdown // 4:02d}.{countdown % 4 + 1}"


class TrackSourceSlot(enum.Enum):
    NO_TRACK = 0
    CD_SLOT = 1
    SD_SLOT = 2
    USB_SLOT = 3
    COLLECTION = 4


class TrackType(enum.Enum):
    NO_TRACK = 0
    REKORDBOX = 1
    UNANALYZED = 2
    CD_DIGITAL_AUDIO = 5


def make_beat(**overrides):
    members = dict(
        device_number=2,
        device_name="CDJ-2000",
        address="192.168.1.12",
        timestamp=1_000,
        bpm=12800,
        pitch=0x100000,
        effective_tempo=128.0,
        beat_within_bar=1,
        is_beat_within_bar_meaningful=True,
        is_tempo_master=False,
    )
    members.update(overrides)
    return Beat(**members)


def make_cdj_status(**overrides):
    members = dict(
        device_number=3,
        device_name="CDJ-3000",
        address="192.168.1.13",
        timestamp=2_000,
        bpm=12050,
        pitch=0x100000,
        effective_tempo=120.5,
        beat_within_bar=2,
        is_beat_within_bar_meaningful=True,
        is_tempo_master=True,
        is_playing=True,
        is_paused=False,
        is_cued=False,
        is_at_end=False,
        is_busy=True,
        is_looping=False,
        is_on_air=True,
        is_synced=False,
        beat_number=33,
        cue_countdown=511,
        rekordbox_id=4711,
        track_number=7,
        track_source_player=3,
        track_source_slot=TrackSourceSlot.USB_SLOT,
        track_type=TrackType.REKORDBOX,
    )
    members.update(overrides)
    return CdjStatus(**members)


def make_mixer_status(**overrides):
    members = dict(
        device_number=33,
        device_name="DJM-900NXS2",
        address="192.168.1.33",
        timestamp=3_000,
        bpm=12400,
        effective_tempo=124.0,
        beat_within_bar=1,
        is_beat_within_bar_meaningful=True,
        is_tempo_master=False,
    )
    members.update(overrides)
    return MixerStatus(**members)


# ---------------------------------------------------------------------------
# Catalog layouts (the dictionary form accepted by build_catalog)
# ---------------------------------------------------------------------------

U, B, M, C = (
    EventTypeTag.DEVICE_UPDATE,
    EventTypeTag.BEAT,
    EventTypeTag.MIXER_STATUS,
    EventTypeTag.CDJ_STATUS,
)

# Base type U with ts, subtype B adding master?.
TIMESTAMP_MASTER_LAYOUT = {
    U: {"bindings": {"ts": ("(.current-timestamp status)", "When it happened.")}},
    B: {
        "inherits": [U],
        "bindings": {"master?": ("(.is-master status)", "Sent by the master?")},
    },
}

# C inherits from both B and M, which both override U's "shared".
DIAMOND_LAYOUT = {
    U: {"bindings": {
        "shared": ('"from-update"', ""),
        "base-only": ('"base"', ""),
    }},
    B: {"inherits": [U], "bindings": {"shared": ('"from-beat"', "")}},
    M: {"inherits": [U], "bindings": {"shared": ('"from-mixer"', "")}},
    C: {"inherits": [B, M], "bindings": {}},
}

# The child's own binding must beat every ancestor's.
CHILD_OVERRIDE_LAYOUT = {
    U: {"bindings": {"shared": ('"from-update"', "")}},
    B: {"inherits": [U], "bindings": {"shared": ('"from-beat"', "")}},
    M: {"inherits": [U], "bindings": {"shared": ('"from-mixer"', "")}},
    C: {"inherits": [B, M], "bindings": {"shared": ('"from-cdj"', "")}},
}

# Extraction code that always fails, to prove unreferenced bindings never run.
EXPLODING_LAYOUT = {
    U: {"bindings": {
        "boom": ("(.no-such-member status)", "Fails whenever evaluated."),
        "number": ("(.device-number status)", "Device number."),
    }},
}

CYCLIC_LAYOUT = {
    U: {"inherits": [C], "bindings": {}},
    C: {"inherits": [U], "bindings": {}},
}

DANGLING_PARENT_LAYOUT = {
    C: {"inherits": [B], "bindings": {}},
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    """A fresh, empty SharedState to use as globals."""
    return SharedState(name="test globals")

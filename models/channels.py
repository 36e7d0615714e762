"""Channel descriptor registry used by aggregation, thresholds and display."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class Directionality(str, Enum):
    two_sided = "two-sided"
    one_sided_high = "one-sided-high"


class UnknownChannelError(KeyError):
    """Raised when a channel id is not present in the registry."""


@dataclass(frozen=True)
class ChannelDescriptor:
    """Static metadata for one sensor channel.

    ``column`` is the reading attribute holding the primary value. Composite
    channels also list their per-axis columns in ``axes``; the primary value
    of a composite channel is its magnitude.
    """

    channel_id: str
    label: str
    unit: str
    directionality: Directionality
    column: str
    default_optimal: Tuple[float, float]
    default_warning: Tuple[Optional[float], float]
    default_critical: Tuple[Optional[float], float]
    floor: Optional[float] = None
    axes: Dict[str, str] = field(default_factory=dict)

    @property
    def is_two_sided(self) -> bool:
        return self.directionality is Directionality.two_sided

    @property
    def columns(self) -> Tuple[str, ...]:
        if self.axes:
            return tuple(self.axes.values())
        return (self.column,)


_DESCRIPTORS = (
    ChannelDescriptor(
        channel_id="temperature",
        label="Temperature",
        unit="°C",
        directionality=Directionality.two_sided,
        column="temperature",
        default_optimal=(18.0, 26.0),
        default_warning=(15.0, 30.0),
        default_critical=(10.0, 35.0),
    ),
    ChannelDescriptor(
        channel_id="humidity",
        label="Humidity",
        unit="%",
        directionality=Directionality.two_sided,
        column="humidity",
        default_optimal=(40.0, 60.0),
        default_warning=(30.0, 70.0),
        default_critical=(20.0, 80.0),
        floor=0.0,
    ),
    ChannelDescriptor(
        channel_id="pressure",
        label="Pressure",
        unit="hPa",
        directionality=Directionality.two_sided,
        column="pressure",
        default_optimal=(1000.0, 1020.0),
        default_warning=(990.0, 1030.0),
        default_critical=(980.0, 1040.0),
        floor=0.0,
    ),
    ChannelDescriptor(
        channel_id="gas_resistance",
        label="Gas Resistance",
        unit="kΩ",
        directionality=Directionality.two_sided,
        column="gas_resistance",
        default_optimal=(50.0, 300.0),
        default_warning=(20.0, 500.0),
        default_critical=(10.0, 800.0),
        floor=0.0,
    ),
    ChannelDescriptor(
        channel_id="pm1_0",
        label="PM1.0",
        unit="µg/m³",
        directionality=Directionality.one_sided_high,
        column="pm1_0",
        default_optimal=(0.0, 10.0),
        default_warning=(None, 25.0),
        default_critical=(None, 50.0),
        floor=0.0,
    ),
    ChannelDescriptor(
        channel_id="pm2_5",
        label="PM2.5",
        unit="µg/m³",
        directionality=Directionality.one_sided_high,
        column="pm2_5",
        default_optimal=(0.0, 12.0),
        default_warning=(None, 25.0),
        default_critical=(None, 55.0),
        floor=0.0,
    ),
    ChannelDescriptor(
        channel_id="pm10",
        label="PM10",
        unit="µg/m³",
        directionality=Directionality.one_sided_high,
        column="pm10",
        default_optimal=(0.0, 20.0),
        default_warning=(None, 50.0),
        default_critical=(None, 100.0),
        floor=0.0,
    ),
    ChannelDescriptor(
        channel_id="acceleration",
        label="Vibration (acceleration)",
        unit="m/s²",
        directionality=Directionality.one_sided_high,
        column="accel_magnitude",
        default_optimal=(0.0, 1.0),
        default_warning=(None, 2.0),
        default_critical=(None, 3.0),
        floor=0.0,
        axes={
            "x": "accel_x",
            "y": "accel_y",
            "z": "accel_z",
            "magnitude": "accel_magnitude",
        },
    ),
    ChannelDescriptor(
        channel_id="angular_velocity",
        label="Angular velocity",
        unit="°/s",
        directionality=Directionality.one_sided_high,
        column="gyro_magnitude",
        default_optimal=(0.0, 0.5),
        default_warning=(None, 1.5),
        default_critical=(None, 3.0),
        floor=0.0,
        axes={
            "x": "gyro_x",
            "y": "gyro_y",
            "z": "gyro_z",
            "magnitude": "gyro_magnitude",
        },
    ),
)

CHANNELS: Dict[str, ChannelDescriptor] = {
    descriptor.channel_id: descriptor for descriptor in _DESCRIPTORS
}


def get_channel(channel_id: str) -> ChannelDescriptor:
    try:
        return CHANNELS[channel_id]
    except KeyError:
        raise UnknownChannelError(f"Unknown sensor channel {channel_id!r}.") from None

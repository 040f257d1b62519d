from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import numpy as np


@dataclass(frozen=True)
class Input:
    key: str


@dataclass(frozen=True)
class Resize:
    pass


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Log:
    level: int
    message: str
    created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class CommandResponse:
    data: Any


@dataclass(frozen=True)
class SystemInfo:
    station_ids: tuple
    info: Any


@dataclass(frozen=True)
class RotatorPosition:
    azimuth: float
    elevation: float


@dataclass(frozen=True)
class WaterfallCreated:
    observation_id: int
    frequencies: np.ndarray = field(compare=False)


@dataclass(frozen=True)
class WaterfallData:
    timestamp: int
    power: np.ndarray = field(compare=False)


@dataclass(frozen=True)
class WaterfallClosed:
    observation_id: int


@dataclass(frozen=True)
class Shutdown:
    pass


# payloads carried by CommandResponse

@dataclass(frozen=True)
class JobsData:
    station_id: int
    pairs: list = field(compare=False)


@dataclass(frozen=True)
class StationInfoData:
    station_id: int
    info: Optional[Any] = None


EVENT_TYPES = (
    Input, Resize, Tick, Log, CommandResponse, SystemInfo, RotatorPosition,
    WaterfallCreated, WaterfallData, WaterfallClosed, Shutdown,
)

import os
import tomllib
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, TomlConfigSettingsSource

from .errors import SettingsError

DEFAULT_API = "https://network.satnogs.org/api"


class StationConfig(BaseModel):
    satnogs_id: int
    local: bool = False


class UiSettings(BaseModel):
    ground_track_num: int = Field(3, ge=1)
    db_min: float = -100.0
    db_max: float = 0.0
    spectrum_plot: bool = False
    waterfall: bool = False
    waterfall_rows: int = Field(200, ge=1)

    @model_validator(mode="after")
    def check_db_range(self):
        if self.db_min >= self.db_max:
            raise ValueError(f"db_min ({self.db_min}) must be lower than db_max ({self.db_max})")
        return self


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SATNOGS_MONITOR_", env_nested_delimiter="__")

    api_endpoint: str = DEFAULT_API
    api_key: Optional[str] = None
    stations: List[StationConfig] = []
    log_level: int = 0
    data_path: Optional[Path] = None
    rotctld_address: Optional[str] = None
    rotctld_interval: float = Field(1.0, gt=0)
    job_update_interval: int = Field(600, ge=1)
    waterfall_zoom: float = 1.0
    tle_file: Optional[Path] = None
    track: List[str] = []
    ui: UiSettings = UiSettings()

    @field_validator("waterfall_zoom")
    @classmethod
    def clamp_zoom(cls, value):
        return max(1.0, min(10.0, value))

    @model_validator(mode="after")
    def merge_stations(self):
        merged = {}
        for station in self.stations:
            if station.satnogs_id in merged:
                merged[station.satnogs_id].local |= station.local
            else:
                merged[station.satnogs_id] = station.model_copy()
        self.stations = [merged[k] for k in sorted(merged)]
        return self

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings, dotenv_settings,
                                   file_secret_settings):
        # command line > environment > config file
        return init_settings, env_settings, TomlConfigSettingsSource(settings_cls)

    @property
    def local_station_ids(self):
        return tuple(s.satnogs_id for s in self.stations if s.local)

    @classmethod
    def from_file(cls, path, **overrides):
        path = Path(path)
        if not path.is_file():
            raise SettingsError(f"config file {path} not found")
        with_file = type(cls.__name__, (cls,), {
            "__module__": cls.__module__,
            "model_config": SettingsConfigDict(toml_file=path),
        })
        try:
            return with_file.build(**overrides)
        except tomllib.TOMLDecodeError as e:
            raise SettingsError(f"config file {path}: {e}")

    @classmethod
    def build(cls, **data):
        try:
            return cls(**data)
        except ValidationError as e:
            raise SettingsError(str(e))

    @classmethod
    def load(cls, path=None, **overrides):
        if path is not None:
            return cls.from_file(path, **overrides)
        default = default_config_path()
        if default.exists():
            return cls.from_file(default, **overrides)
        return cls.build(**overrides)


def default_config_path():
    base = os.getenv("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return Path(base) / "satnogs-monitor" / "config.toml"

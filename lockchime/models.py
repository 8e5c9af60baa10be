from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlmodel import Field, SQLModel


class EventType(str, Enum):
    PLAY = "play"
    DOWNLOAD = "download"
    FAVORITE = "favorite"
    UNFAVORITE = "unfavorite"


class SoundCounters(BaseModel):
    plays: int = PydanticField(default=0, ge=0)
    downloads: int = PydanticField(default=0, ge=0)
    favorites: int = PydanticField(default=0, ge=0)


class GlobalCounters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_plays: int = PydanticField(default=0, ge=0, alias="totalPlays")
    total_downloads: int = PydanticField(default=0, ge=0, alias="totalDownloads")
    total_favorites: int = PydanticField(default=0, ge=0, alias="totalFavorites")
    last_updated: str = PydanticField(default="", alias="lastUpdated")


class AggregateSnapshot(BaseModel):
    """The single shared record: every sound's counters plus the rollup."""

    model_config = ConfigDict(populate_by_name=True)

    sounds: Dict[str, SoundCounters] = PydanticField(default_factory=dict)
    global_: GlobalCounters = PydanticField(default_factory=GlobalCounters, alias="global")

    def counters_for(self, sound_id: str) -> SoundCounters:
        return self.sounds.get(sound_id) or SoundCounters()

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class EventRequest(BaseModel):
    # Left optional so a missing field reaches event validation as a 400.
    model_config = ConfigDict(populate_by_name=True)

    sound_id: Optional[str] = PydanticField(default=None, alias="soundId")
    event: Optional[str] = None


class StatsRecord(SQLModel, table=True):
    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

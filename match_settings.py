from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from match_play_engine import FRAME_HOLES, Stakes


class Settings(BaseSettings):
    # Points per frame (30-10-10 by default)
    main_stake: int = Field(30, ge=0)
    dormie_stake: int = Field(10, ge=0)
    bye_stake: int = Field(10, ge=0)

    # How many segments the settlement sheet splits a frame into
    segment_count: int = Field(3, ge=1, le=FRAME_HOLES)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="MATCH_", env_file=".env", extra="ignore")

    def stakes(self) -> Stakes:
        return Stakes(main=self.main_stake, dormie=self.dormie_stake, bye=self.bye_stake)


@lru_cache()
def get_settings():
    return Settings()

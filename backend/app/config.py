from functools import lru_cache
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


def _env_bool(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


class Settings(BaseModel):
    api_base_url: str = Field(default="")
    api_username: str = Field(default="")
    api_password: str = Field(default="")
    api_key: str = Field(default="")
    rental_times_path: str = Field(default="/hs/api/v3/rental_times")
    rental_rooms_path: str = Field(default="/hs/api/v3/rental_rooms")
    rooms_services_path: str = Field(default="rooms_services.json")
    slot_offset_minutes: int = Field(default=0)
    default_club_id: Optional[str] = Field(default=None)
    allow_insecure_tls: bool = Field(default=False)
    upstream_timeout_seconds: float = Field(default=15.0, gt=0)


@lru_cache
def get_settings() -> Settings:
    defaults = Settings.model_fields
    return Settings(
        api_base_url=os.getenv("API_BASE_URL", "").rstrip("/"),
        api_username=os.getenv("API_USERNAME", ""),
        api_password=os.getenv("API_PASSWORD", ""),
        api_key=os.getenv("API_KEY", ""),
        rental_times_path=os.getenv("API_RENTAL_TIMES_PATH", defaults["rental_times_path"].default),
        rental_rooms_path=os.getenv("API_RENTAL_ROOMS_PATH", defaults["rental_rooms_path"].default),
        rooms_services_path=os.getenv(
            "ROOMS_SERVICES_PATH",
            os.path.join(os.getcwd(), defaults["rooms_services_path"].default),
        ),
        slot_offset_minutes=int(os.getenv("SLOT_OFFSET_MINUTES", "0") or 0),
        default_club_id=os.getenv("DEFAULT_CLUB_ID") or None,
        allow_insecure_tls=_env_bool("ALLOW_INSECURE_TLS"),
        upstream_timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "15") or 15),
    )

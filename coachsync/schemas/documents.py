"""Singleton, unkeyed documents: the warm-up plan and app settings."""

from pydantic import BaseModel, Field


class WarmupStep(BaseModel):
    id: str
    title: str = ""
    duration_minutes: float | None = None

    class Config:
        extra = "allow"


class WarmupPlan(BaseModel):
    id: str = "default"
    version: int = 1
    sections: list[WarmupStep] = Field(default_factory=list)
    last_modified: str | None = None
    is_default: bool = False

    class Config:
        extra = "allow"


class AppSettings(BaseModel):
    language: str = "en"
    current_game_id: str | None = None
    last_home_team_name: str | None = None
    default_period_duration_minutes: float | None = None
    updated_at: str | None = None

    class Config:
        extra = "allow"

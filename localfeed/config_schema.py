from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .media import DEFAULT_MAX_ATTACHMENTS


def _normalize_term_list(values: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()

    for item in values:
        term = (item or "").strip()
        if not term:
            continue
        key = term.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(term)

    return out


PositiveInt = Annotated[int, Field(ge=1)]


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = "localfeed.sqlite"
    path_env: str = "LOCALFEED_STATE"

    @field_validator("path")
    @classmethod
    def _path_must_be_non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("must be a non-empty path")
        return value


class MediaConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attachments: PositiveInt = DEFAULT_MAX_ATTACHMENTS


class PolicyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    extra_terms: list[str] = Field(default_factory=list)

    @field_validator("extra_terms")
    @classmethod
    def _normalize_extra_terms(cls, v: list[str]) -> list[str]:
        return _normalize_term_list(v)


class FeedConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    brand: str = "LocalFeed"
    default_scope: Literal["local", "global"] = "local"


class SeedConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True


class LogConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str | None = None  # None disables the activity log


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    storage: StorageConfig = Field(default_factory=StorageConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    seed: SeedConfig = Field(default_factory=SeedConfig)
    log: LogConfig = Field(default_factory=LogConfig)

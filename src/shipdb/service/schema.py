"""Pydantic models for the JSON parts of the service API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, TypeAdapter

if TYPE_CHECKING:
    from .state import ChangeEntry


class ChangeEntryModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    status: Literal["new", "improved"]
    speed: str
    line: str

    @classmethod
    def from_entry(cls, entry: ChangeEntry) -> ChangeEntryModel:
        return cls(type=entry.type, status=entry.status, speed=entry.speed, line=entry.line)


CHANGE_LIST_ADAPTER: TypeAdapter[list[ChangeEntryModel]] = TypeAdapter(list[ChangeEntryModel])

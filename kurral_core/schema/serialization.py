# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.

from __future__ import annotations

import dataclasses
import datetime
import enum
import inspect
from typing import Any, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound="SchemaModel")


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class SchemaModel(BaseModel):
    """
    Canonical base for stored records and pipeline payloads (Pydantic v2).

    - Ignores extra fields so older store documents still load.
    - Provides `to_dict()` / `from_dict()` for store round-trips.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    def to_dict(self) -> dict[str, Any]:
        return dump_schema(self)

    @classmethod
    def from_dict(cls: type[T], data: dict[str, Any]) -> T:
        return load_schema(cls, data)


def dump_schema(model: Any) -> dict[str, Any]:
    """
    Dump a schema model to a JSON-safe dict.

    Pydantic models go through `model_dump(mode="json")`; dataclasses and
    objects exposing `to_dict()` are converted recursively.
    """
    if isinstance(model, BaseModel):
        return model.model_dump(mode="json", exclude_none=True)
    if dataclasses.is_dataclass(model) and not isinstance(model, type):
        return _json_safe(dataclasses.asdict(model))
    if hasattr(model, "to_dict") and callable(getattr(model, "to_dict")):
        out = model.to_dict()
        return _json_safe(out if isinstance(out, dict) else {"value": out})
    raise TypeError(f"Unsupported schema type for dump: {type(model)!r}")


def load_schema(model_cls: type[T], data: dict[str, Any]) -> T:
    if not isinstance(data, dict):
        raise TypeError(f"Schema input must be a dict, got: {type(data)!r}")
    if inspect.isclass(model_cls) and issubclass(model_cls, BaseModel):
        return model_cls.model_validate(data)
    if hasattr(model_cls, "from_dict") and callable(getattr(model_cls, "from_dict")):
        return model_cls.from_dict(data)  # type: ignore[no-any-return]
    raise TypeError(f"Unsupported schema type for load: {model_cls!r}")


def dump_many(models: list[Any] | None) -> list[dict[str, Any]]:
    return [dump_schema(m) for m in (models or [])]


def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return dump_schema(value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value

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

from dataclasses import dataclass

from kurral_core.llm.failures import LLMFailureKind, TRANSIENT_KINDS


@dataclass
class LLMCallError(Exception):
    message: str
    kind: LLMFailureKind = LLMFailureKind.PROVIDER_ERROR
    attempts: int = 1

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.message} (kind={self.kind.value}, attempts={self.attempts})"

    @property
    def transient(self) -> bool:
        return self.kind in TRANSIENT_KINDS

    @property
    def malformed_output(self) -> bool:
        return self.kind in (
            LLMFailureKind.INVALID_JSON,
            LLMFailureKind.SCHEMA_VALIDATION_FAILED,
            LLMFailureKind.EMPTY_RESPONSE,
        )

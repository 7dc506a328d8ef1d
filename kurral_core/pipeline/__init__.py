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

"""
Value & trust pipeline.

`PipelineOrchestrator` and `PipelineWorkQueue` live in their own modules and
are imported from there; this package root only exposes errors and run
outcome constants so skills can import them without a cycle.
"""

from kurral_core.pipeline.constants import (
    RUN_ALREADY_RUNNING,
    RUN_AWAITING_ORIGINAL,
    RUN_COMPLETED,
    RUN_DELETED,
    RUN_NOT_FOUND,
)
from kurral_core.pipeline.errors import PipelineExecutionError, PipelineViolation

__all__ = [
    "PipelineExecutionError",
    "PipelineViolation",
    "RUN_ALREADY_RUNNING",
    "RUN_AWAITING_ORIGINAL",
    "RUN_COMPLETED",
    "RUN_DELETED",
    "RUN_NOT_FOUND",
]

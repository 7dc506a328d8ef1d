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

from kurral_core.store.base import ItemNotFoundError, PipelineStore, StoreConfig, StoreError
from kurral_core.store.memory import InMemoryPipelineStore

__all__ = [
    "ItemNotFoundError",
    "PipelineStore",
    "StoreConfig",
    "StoreError",
    "InMemoryPipelineStore",
]

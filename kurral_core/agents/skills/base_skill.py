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

import logging

from kurral_core.agents.llm_client import LLMClient
from kurral_core.config import KurralConfig
from kurral_core.runtime_config import EngineRuntimeConfig

logger = logging.getLogger(__name__)


class BaseSkill:
    def __init__(self, config: KurralConfig | None, llm_client: LLMClient):
        self.config = config or KurralConfig()
        self.runtime: EngineRuntimeConfig = self.config.runtime or EngineRuntimeConfig.load_from_env()
        self.llm_client = llm_client

    def model_for(self, *, has_image: bool = False) -> str:
        return self.config.openai_vision_model if has_image else self.config.openai_model

    @property
    def max_output_tokens(self) -> int:
        return self.runtime.llm.max_output_tokens

    @property
    def timeout(self) -> float:
        return self.runtime.llm.timeout_sec

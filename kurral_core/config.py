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

from typing import Optional

from pydantic import BaseModel, Field

from kurral_core.runtime_config import EngineRuntimeConfig


class KurralConfig(BaseModel):
    """
    Configuration for the Kurral value pipeline.
    Decouples the engine from environment variables.
    """

    model_config = {"arbitrary_types_allowed": True}

    # Generation oracle
    openai_api_key: Optional[str] = Field(None, description="OpenAI API Key for LLM operations")
    openai_model: str = Field("gpt-4o-mini", description="Model for text-only analysis")
    openai_vision_model: str = Field("gpt-4o", description="Model used when an image is attached")

    # Search oracle
    tavily_api_key: Optional[str] = Field(None, description="Tavily API Key for web search")

    runtime: Optional[EngineRuntimeConfig] = Field(None, description="Runtime knobs; loaded from env when unset")

    def resolved_runtime(self) -> EngineRuntimeConfig:
        return self.runtime or EngineRuntimeConfig.load_from_env()

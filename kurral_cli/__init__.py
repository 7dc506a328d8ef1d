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
Kurral CLI Module

Command-line tools for running the value & trust pipeline locally.

Commands:
- pipeline run <items.json>: Run items through the pipeline (in-memory store)
- pipeline stages: List pipeline stages in execution order
- pipeline config: Print the resolved runtime configuration (secrets omitted)

Usage:
    python -m kurral_cli run items.json
    python -m kurral_cli config
"""

from kurral_cli.pipeline_cmd import main

__all__ = ["main"]

if __name__ == "__main__":
    main()

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
Kurral CLI Module entry point for `python -m kurral_cli`.
"""

from kurral_cli.pipeline_cmd import main

main()

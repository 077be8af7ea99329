# Copyright (c) 2019-2022 Varada, Inc.
# This file is part of Plan View.
#
# Plan View is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Plan View is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with Plan View.  If not, see <https://www.gnu.org/licenses/>.


class ProfileError(ValueError):
    """The profile document cannot be turned into a plan graph."""

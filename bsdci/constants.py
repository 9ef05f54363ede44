# Fixed names and timings.
# Copyright (C) 2026  The bsd-ci contributors

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.

# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""
Constants shared between the pot adapter, the script renderer and the builder.
"""

import datetime
import typing as T

POT_EXECUTABLE: T.Final = "pot"
"""Name of the ``pot`` jail manager executable, looked up in ``PATH``."""

GIT_EXECUTABLE: T.Final = "git"

FSCOMP_MOUNT_POINT: T.Final = "/mnt"
"""Where the source fscomp is attached inside each builder pot."""

SNAPSHOT_NAME: T.Final = "source_only"
"""
Label of the only fscomp snapshot ever taken, right after the clone.  ``pot``
picks the snapshot name itself; this is only used in error messages.
"""

BUILD_SCRIPT_NAME: T.Final = "build.sh"
"""Name of the build script template, and of the installed script."""

BUILD_SCRIPT_COMMAND: T.Final = "/root/build.sh"
"""Path of the build script as seen from inside the pot."""

DESTROY_RETRY_INTERVAL: T.Final = datetime.timedelta(seconds=10)
DESTROY_TIMEOUT: T.Final = datetime.timedelta(minutes=10)

BUILD_MATRIX_FILE: T.Final = ".bsd-ci.yml"
"""Build matrix document, at the root of the built repository."""

DEFAULT_CONFIG_FILE: T.Final = "./bsd-ci.conf"

# Utilities for dealing with processes.
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
This module contains utilities for executing subprocesses.

Every external tool bsd-ci drives (``pot`` and ``git``) is run through
:py:func:`run_command`, synchronously, with both output streams captured.
"""

import logging
import shlex
import subprocess

logger = logging.getLogger(__name__)


def run_command(*args: str) -> "subprocess.CompletedProcess[bytes]":
    """
    Runs a subprocess to completion, capturing its standard output and error.

    A non-zero exit status is not an error here; callers inspect
    ``returncode`` and raise whatever fits.  Failing to launch the process at
    all (e.g. a missing executable) raises :py:class:`OSError`.
    """
    logger.debug("running command %s", shlex.join(args))
    proc = subprocess.run(
        args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    logger.debug("exit code: %d", proc.returncode)
    return proc

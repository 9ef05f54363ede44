# Common argument parsing code.
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
Argument parsing helpers.  Every bsd-ci command reads the same configuration file
and understands the same verbosity and version flags.
"""

import argparse

from bsdci.constants import DEFAULT_CONFIG_FILE

VERSION_NOTICE = """\
bsd-ci v{version}

Copyright (C) 2026 The bsd-ci contributors
License AGPLv3+: GNU AGPL version 3 or later <https://gnu.org/licenses/agpl.html>.
This is free software: you are free to change and redistribute it.
There is NO WARRANTY, to the extent permitted by law.
"""


def create_root_parser(description: str) -> argparse.ArgumentParser:
    """
    Creates a :py:class:`argparse.ArgumentParser` that already knows ``--version``,
    ``-v/--verbose`` and ``-c/--config``.
    """
    from bsdci import __version__

    parser = argparse.ArgumentParser(
        description=description,
        epilog="Logs of each build are written as <pot>.log and <pot>_err.log.",
    )
    parser.add_argument(
        "--version", action="version", version=VERSION_NOTICE.format(version=__version__)
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="log debug messages, including every external command run",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="CONFIG",
        help="configuration file (default: %(default)s)",
        default=DEFAULT_CONFIG_FILE,
    )
    return parser

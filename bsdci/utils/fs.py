# Filesystem utilities.
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
This package contains utilities used for dealing with the filesystem.
"""

import contextlib
import os
import os.path as path
import tempfile
import typing as T

AnyPath: T.TypeAlias = os.PathLike[str] | str


@contextlib.contextmanager
def atomic_write_open(
    fpath: AnyPath, mode: str, permissions: int | None = None
) -> T.Generator[T.IO[T.Any], None, None]:
    """
    Opens a temporary file next to ``fpath``, and renames it over ``fpath`` once the
    ``with`` block completes.  Readers never observe a half-written file.

    Args:
      fpath: Final location of the file.
      mode: Mode to open the temporary file in.  Must be a write mode.
      permissions: If not ``None``, permission bits to set before the rename.
    """
    path_dir = path.dirname(fpath) or "."
    with tempfile.NamedTemporaryFile(prefix=".", dir=path_dir, delete=False, mode=mode) as f:
        try:
            yield f
            f.flush()
            if permissions is not None:
                os.fchmod(f.fileno(), permissions)
        except BaseException:
            os.unlink(f.name)
            raise
    os.rename(f.name, fpath)

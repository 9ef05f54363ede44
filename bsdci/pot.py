# Interface to the pot jail manager.
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
This module wraps the ``pot`` command line tool.

bsd-ci uses two kinds of pot objects:

* *pots*, jails cloned from a pre-provisioned base pot (one per OS version and
  toolchain), one per build job, destroyed when the job is done;
* one *fscomp*, a ZFS dataset holding the cloned sources, which is mounted into
  every builder pot and rolled back to its snapshot after each job.

Every method is a synchronous ``pot`` (or ``git``) invocation.  Nothing is retried,
except for :py:meth:`PotManager.destroy_pot`.
"""

import enum
import logging
import os.path as path
import time
import typing as T

import humanize

import bsdci.utils.proc as bcu_proc
from bsdci.constants import (
    DESTROY_RETRY_INTERVAL,
    DESTROY_TIMEOUT,
    FSCOMP_MOUNT_POINT,
    GIT_EXECUTABLE,
    POT_EXECUTABLE,
    SNAPSHOT_NAME,
)
from bsdci.errors import (
    ContainerAlreadyExists,
    ContainerCloneFailed,
    ContainerDestroyFailed,
    ContainerPrefixUnavailable,
    ContainerStartFailed,
    ContainerStopFailed,
    FscompAttachFailed,
    FscompCreateFailed,
    FscompDestroyFailed,
    FscompPrefixUnavailable,
    FscompRevertFailed,
    FscompSnapshotFailed,
    GitCloneFailed,
    GitCloneTagFailed,
)

if T.TYPE_CHECKING:
    import datetime
    import subprocess

logger = logging.getLogger(__name__)


class PrefixKind(enum.Enum):
    """Directories, configured in ``pot``, under which its objects live."""

    FSCOMP = "fscomp_prefix"
    POT = "pot_prefix"


def builder_pot_name(base_image: str, fscomp_name: str) -> str:
    """
    Name of the pot building ``fscomp_name`` from ``base_image``.  Unique across
    jobs, as long as a project is only built once at a time.
    """
    return f"{base_image}-{fscomp_name}"


class PotManager:
    """
    Stateless adapter over the ``pot`` command.

    Args:
      sleep: Function used to wait between pot destruction attempts.
      clock: Monotonic clock used for the pot destruction deadline.
      destroy_timeout: How long to keep trying to destroy a pot.
      retry_interval: How long to wait between two attempts.
    """

    def __init__(
        self,
        sleep: T.Callable[[float], None] = time.sleep,
        clock: T.Callable[[], float] = time.monotonic,
        destroy_timeout: "datetime.timedelta" = DESTROY_TIMEOUT,
        retry_interval: "datetime.timedelta" = DESTROY_RETRY_INTERVAL,
    ) -> None:
        self._sleep = sleep
        self._clock = clock
        self.destroy_timeout = destroy_timeout
        self.retry_interval = retry_interval

    def _pot(self, *args: str) -> "subprocess.CompletedProcess[bytes]":
        return bcu_proc.run_command(POT_EXECUTABLE, *args)

    def _is_listed(self, list_flag: str, name: str) -> bool:
        proc = self._pot("ls", list_flag)
        if proc.returncode != 0:
            logger.warning("pot ls %s failed, assuming %s is not present", list_flag, name)
            return False
        try:
            names = proc.stdout.decode().splitlines()
        except UnicodeDecodeError:
            logger.warning("pot ls %s returned garbage, assuming %s is not present", list_flag, name)
            return False
        return name in names

    def pot_exists(self, name: str) -> bool:
        """
        Returns ``True`` iff ``pot`` knows a pot called ``name``.  A failure to list
        pots counts as absent.
        """
        return self._is_listed("-q", name)

    base_image_exists = pot_exists

    def fscomp_exists(self, name: str) -> bool:
        """
        Returns ``True`` iff ``pot`` knows a fscomp called ``name``.  A failure to list
        fscomps counts as absent.
        """
        return self._is_listed("-fq", name)

    def resolve_path_prefix(self, kind: PrefixKind) -> str:
        """
        Asks ``pot`` where it keeps objects of the given ``kind``.

        Raises:
          FscompPrefixUnavailable: ``kind`` is :py:attr:`PrefixKind.FSCOMP`, and pot
                                   could not tell.
          ContainerPrefixUnavailable: Same, for :py:attr:`PrefixKind.POT`.
        """
        proc = self._pot("config", "-qg", kind.value)
        prefix = None
        if proc.returncode == 0:
            try:
                prefix = proc.stdout.decode().rstrip()
            except UnicodeDecodeError:
                pass
        if not prefix:
            if kind is PrefixKind.FSCOMP:
                raise FscompPrefixUnavailable()
            raise ContainerPrefixUnavailable()
        return prefix

    def get_fscomp_path(self, fscomp_name: str) -> str:
        """Path of the root of the ``fscomp_name`` dataset."""
        return path.join(self.resolve_path_prefix(PrefixKind.FSCOMP), fscomp_name)

    def get_pot_path(self, pot_name: str) -> str:
        """Path of the ``pot_name`` pot.  Its root filesystem is under ``m/``."""
        return path.join(self.resolve_path_prefix(PrefixKind.POT), pot_name)

    # Pots.

    def spawn_builder_pot(self, base_image: str, fscomp_name: str, force: bool) -> str:
        """
        Clones ``base_image`` into a new builder pot, and attaches the fscomp
        ``fscomp_name`` to it.

        If a pot with the same name exists, it is destroyed when ``force`` is set.
        If attaching fails, the cloned pot is left behind; it is up to the caller to
        clean it up.

        Returns:
          The name of the new pot.

        Raises:
          ContainerAlreadyExists: The pot exists and ``force`` is not set.
        """
        pot_name = builder_pot_name(base_image, fscomp_name)
        if self.pot_exists(pot_name):
            if not force:
                raise ContainerAlreadyExists(pot_name)
            logger.info("pot %s already present, destroying it", pot_name)
            if not self._try_destroy_pot(pot_name):
                raise ContainerDestroyFailed(pot_name)

        if self._pot("clone", "-f", "-P", base_image, "-p", pot_name).returncode != 0:
            raise ContainerCloneFailed(pot_name, base_image)

        proc = self._pot(
            "add-fscomp", "-p", pot_name, "-f", fscomp_name, "-m", FSCOMP_MOUNT_POINT
        )
        if proc.returncode != 0:
            raise FscompAttachFailed(pot_name, fscomp_name, FSCOMP_MOUNT_POINT)

        return pot_name

    def configure_and_start(self, pot_name: str, command: str) -> tuple[bytes, bytes]:
        """
        Makes ``command`` the startup command of ``pot_name`` and starts it.  Returns
        only after that command has exited.

        Returns:
          The standard output and standard error of the pot.
        """
        if self._pot("set-cmd", "-p", pot_name, "-c", command).returncode != 0:
            raise ContainerStartFailed(pot_name)

        proc = self._pot("start", pot_name)
        if proc.returncode != 0:
            raise ContainerStartFailed(pot_name, proc.stdout, proc.stderr)
        return proc.stdout, proc.stderr

    def stop_pot(self, pot_name: str) -> None:
        if self._pot("stop", pot_name).returncode != 0:
            raise ContainerStopFailed(pot_name)

    def _try_destroy_pot(self, pot_name: str) -> bool:
        return self._pot("destroy", "-p", pot_name).returncode == 0

    def destroy_pot(self, pot_name: str, stop: bool = True) -> None:
        """
        Stops and destroys ``pot_name``.  Pass ``stop=False`` for a pot that was never
        started.

        Jail teardown finishes asynchronously, and destroying a pot right after
        stopping it can fail while its resources are being released.  Destruction is
        attempted every :py:attr:`retry_interval` until :py:attr:`destroy_timeout`
        passes.

        Raises:
          ContainerStopFailed: If stopping failed.
          ContainerDestroyFailed: If the pot still exists after the deadline.
        """
        if stop:
            self.stop_pot(pot_name)

        start = self._clock()
        attempts = 0
        while True:
            attempts += 1
            if self._try_destroy_pot(pot_name):
                logger.info("destroyed pot %s (attempt %d)", pot_name, attempts)
                return

            waited = self._clock() - start
            if waited >= self.destroy_timeout.total_seconds():
                logger.error(
                    "giving up on destroying pot %s after %s",
                    pot_name,
                    humanize.naturaldelta(waited),
                )
                raise ContainerDestroyFailed(pot_name)

            logger.debug(
                "pot %s not destroyed yet, retrying in %s",
                pot_name,
                humanize.naturaldelta(self.retry_interval),
            )
            self._sleep(self.retry_interval.total_seconds())

    # Fscomps.

    def create_fscomp(self, fscomp_name: str) -> None:
        if self._pot("create-fscomp", "-f", fscomp_name).returncode != 0:
            raise FscompCreateFailed(fscomp_name)

    def snapshot_fscomp(self, fscomp_name: str) -> None:
        if self._pot("snapshot", "-f", fscomp_name).returncode != 0:
            raise FscompSnapshotFailed(fscomp_name, SNAPSHOT_NAME)

    def revert_fscomp(self, fscomp_name: str) -> None:
        """Rolls ``fscomp_name`` back to its snapshot."""
        if self._pot("revert", "-f", fscomp_name).returncode != 0:
            raise FscompRevertFailed(fscomp_name, SNAPSHOT_NAME)

    def destroy_fscomp(self, fscomp_name: str) -> None:
        if self._pot("destroy", "-f", fscomp_name).returncode != 0:
            raise FscompDestroyFailed(fscomp_name)

    def clone_source_into_fscomp(self, fscomp_path: str, url: str, tag: str | None = None) -> None:
        """
        Shallowly clones ``url`` into ``fscomp_path``.  If ``tag`` is given, that tag
        (or branch) is checked out instead of the default branch.
        """
        args = ["clone", "--depth", "1"]
        if tag is not None:
            args.extend(["--branch", tag])
        proc = bcu_proc.run_command(GIT_EXECUTABLE, *args, url, fscomp_path)
        if proc.returncode == 0:
            return

        stderr = proc.stderr.decode(errors="replace")
        if tag is not None:
            raise GitCloneTagFailed(url, fscomp_path, tag, stderr)
        raise GitCloneFailed(url, fscomp_path, stderr)

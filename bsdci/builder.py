# Build orchestration.
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
This module drives a build run: it prepares the source fscomp of a project, then
builds every job of the queue in its own pot, one after the other.

Each job goes through the following steps::

    VERIFY -> SPAWN -> RENDER -> EXECUTE -> TEARDOWN -> NEXT
                         |
                         +-> STOP (render-only runs)

Every step is a method returning the next step.  An error in any step aborts the
whole run.  What happens to the resources of the failed job then depends on the
:py:class:`~bsdci.data.config.FailurePolicy` of the run.
"""

import enum
import logging
import os
import os.path as path
import sys
import typing as T
from dataclasses import dataclass

import bsdci.utils.fs as bcu_fs
from bsdci.constants import BUILD_SCRIPT_COMMAND
from bsdci.data.build import BuildJob, BuildOpt, Project
from bsdci.data.config import FailurePolicy
from bsdci.errors import (
    BaseImageNotPresent,
    ContainerStartFailed,
    FscompAlreadyPresent,
    FscompAttachFailed,
)
from bsdci.script import BuildScriptRenderer, BuildScriptVariables, install_build_script

if T.TYPE_CHECKING:
    from bsdci.pot import PotManager

logger = logging.getLogger(__name__)


@dataclass
class RunOptions:
    """Options an operator picks for a single run."""

    force: bool = False
    """
    Replace pots and fscomps left behind by a previous run instead of failing.
    """

    render_only: bool = False
    """
    Print the build script of the first job instead of running it, then clean up and
    stop.
    """

    log_dir: str = "."
    """
    Directory receiving ``<pot>.log`` and ``<pot>_err.log``.
    """

    on_failure: FailurePolicy = FailurePolicy.LEAVE


class JobStep(enum.Enum):
    VERIFY = enum.auto()
    SPAWN = enum.auto()
    RENDER = enum.auto()
    EXECUTE = enum.auto()
    TEARDOWN = enum.auto()
    NEXT = enum.auto()
    STOP = enum.auto()


@dataclass
class _JobRun:
    """State of the job currently going through the steps."""

    job: BuildJob
    build_opt: BuildOpt
    log: logging.LoggerAdapter[logging.Logger]

    pot_name: str | None = None
    """
    Name of the pot of this job, once cloned, until it is destroyed.
    """
    started: bool = False
    """
    Whether the pot was started, and so needs stopping before it can be destroyed.
    """


class Builder:
    """
    Builds ``project`` on the pots managed by ``pot``.

    Args:
      pot: Pot adapter.
      project: Project whose sources are built.
      renderer: Renders the build script of each job.
      options: Options of this run.
      token: GitHub token handed to build scripts uploading release assets.
    """

    def __init__(
        self,
        pot: "PotManager",
        project: Project,
        renderer: BuildScriptRenderer,
        options: RunOptions | None = None,
        token: str = "",
    ) -> None:
        self.pot = pot
        self.project = project
        self.renderer = renderer
        self.options = options or RunOptions()
        self.token = token
        self.fscomp_name = project.fscomp_name
        self.log = logging.LoggerAdapter(logger, dict(project=str(project)))
        self._steps: dict[JobStep, T.Callable[[_JobRun], JobStep]] = {
            JobStep.VERIFY: self._verify,
            JobStep.SPAWN: self._spawn,
            JobStep.RENDER: self._render,
            JobStep.EXECUTE: self._execute,
            JobStep.TEARDOWN: self._teardown,
        }

    # Source fscomp.

    def prepare_source(self, clone_url: str, tag: str | None = None) -> str:
        """
        Creates the fscomp of the project, clones the sources into it, and snapshots
        it.  Every job starts from that snapshot.

        Returns:
          The path of the fscomp on the host.

        Raises:
          FscompAlreadyPresent: The fscomp exists, and ``force`` is not set.
        """
        if self.pot.fscomp_exists(self.fscomp_name):
            if not self.options.force:
                raise FscompAlreadyPresent(self.fscomp_name)
            self.log.info("fscomp %s already present, destroying it", self.fscomp_name)
            self.pot.destroy_fscomp(self.fscomp_name)

        fscomp_path = self.pot.get_fscomp_path(self.fscomp_name)
        self.pot.create_fscomp(self.fscomp_name)
        try:
            self.log.info(
                "cloning %s (%s) into %s", clone_url, tag or "default branch", fscomp_path
            )
            self.pot.clone_source_into_fscomp(fscomp_path, clone_url, tag)
            self.pot.snapshot_fscomp(self.fscomp_name)
        except Exception:
            self.discard_source()
            raise
        return fscomp_path

    def discard_source(self) -> None:
        """
        Applies the failure policy to the fscomp, after the run failed outside of a
        job.  Never raises.
        """
        if self.options.on_failure is FailurePolicy.LEAVE:
            self.log.warning(
                "leaving fscomp %s behind, re-run with -f to replace it", self.fscomp_name
            )
            return
        try:
            self.pot.destroy_fscomp(self.fscomp_name)
        except Exception:
            self.log.exception("could not destroy fscomp %s", self.fscomp_name)

    # Jobs.

    def build(self, queue: T.Sequence[BuildJob], build_opt: BuildOpt) -> bool:
        """
        Builds every job of ``queue``, in order, then destroys the fscomp.

        The base pot of every job is checked before anything is spawned, so a
        misconfigured matrix fails without touching any pot.

        Returns:
          ``False`` if the run stopped early because it only renders scripts.

        Raises:
          BaseImageNotPresent: The base pot of a job does not exist.
        """
        try:
            for job in queue:
                if not self.pot.base_image_exists(job.image_name):
                    raise BaseImageNotPresent(job.image_name)

            for job in queue:
                if not self._run_job(job, build_opt):
                    return False
        except Exception:
            self.discard_source()
            raise

        self.log.info("all %d jobs done, destroying fscomp %s", len(queue), self.fscomp_name)
        self.pot.destroy_fscomp(self.fscomp_name)
        return True

    def _run_job(self, job: BuildJob, build_opt: BuildOpt) -> bool:
        run = _JobRun(
            job=job,
            build_opt=build_opt,
            log=logging.LoggerAdapter(logger, dict(project=str(self.project), job=str(job))),
        )
        step = JobStep.VERIFY
        try:
            while step not in (JobStep.NEXT, JobStep.STOP):
                next_step = self._steps[step](run)
                run.log.debug("%s -> %s", step.name, next_step.name)
                step = next_step
        except Exception:
            self._compensate(run)
            raise
        return step is JobStep.NEXT

    def _verify(self, run: _JobRun) -> JobStep:
        # Also checked by the preflight in build(); each job re-checks its base.
        if not self.pot.base_image_exists(run.job.image_name):
            raise BaseImageNotPresent(run.job.image_name)
        return JobStep.SPAWN

    def _spawn(self, run: _JobRun) -> JobStep:
        run.log.info("spawning a pot from %s", run.job.image_name)
        try:
            run.pot_name = self.pot.spawn_builder_pot(
                run.job.image_name, self.fscomp_name, self.options.force
            )
        except FscompAttachFailed as e:
            # The clone succeeded.
            run.pot_name = e.pot
            raise
        return JobStep.RENDER

    def _render(self, run: _JobRun) -> JobStep:
        assert run.pot_name is not None
        variables = BuildScriptVariables.for_job(
            run.job, self.project, run.build_opt, self.token
        )
        script = self.renderer.render(variables)

        if self.options.render_only:
            print(script, end="", file=sys.stdout)
            run.log.info("render only, cleaning up")
            self.pot.destroy_pot(run.pot_name, stop=False)
            run.pot_name = None
            self.pot.destroy_fscomp(self.fscomp_name)
            return JobStep.STOP

        install_build_script(self.pot.get_pot_path(run.pot_name), script)
        return JobStep.EXECUTE

    def _execute(self, run: _JobRun) -> JobStep:
        assert run.pot_name is not None
        run.log.info("building in pot %s", run.pot_name)
        run.started = True
        try:
            stdout, stderr = self.pot.configure_and_start(run.pot_name, BUILD_SCRIPT_COMMAND)
        except ContainerStartFailed as e:
            self._write_logs(run, e.stdout, e.stderr)
            raise
        self._write_logs(run, stdout, stderr)
        return JobStep.TEARDOWN

    def _write_logs(self, run: _JobRun, stdout: bytes, stderr: bytes) -> None:
        assert run.pot_name is not None
        os.makedirs(self.options.log_dir, exist_ok=True)
        for suffix, content in ((".log", stdout), ("_err.log", stderr)):
            log_path = path.join(self.options.log_dir, f"{run.pot_name}{suffix}")
            with bcu_fs.atomic_write_open(log_path, "wb") as f:
                f.write(content)
            run.log.debug("wrote %s", log_path)

    def _teardown(self, run: _JobRun) -> JobStep:
        assert run.pot_name is not None
        self.pot.destroy_pot(run.pot_name, stop=run.started)
        run.pot_name = None
        run.started = False
        self.pot.revert_fscomp(self.fscomp_name)
        run.log.info("done")
        return JobStep.NEXT

    def _compensate(self, run: _JobRun) -> None:
        if run.pot_name is None:
            return
        if self.options.on_failure is FailurePolicy.LEAVE:
            run.log.warning("leaving pot %s behind, re-run with -f to replace it", run.pot_name)
            return
        try:
            self.pot.destroy_pot(run.pot_name, stop=run.started)
        except Exception:
            run.log.exception("could not destroy pot %s", run.pot_name)

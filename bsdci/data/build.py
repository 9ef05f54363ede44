# Build data models.
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
Data models describing what to build: the project, the jobs of its build matrix,
and the per-run build options.
"""

from pydantic import BaseModel, ConfigDict, Field


class Project(BaseModel):
    """
    Identity of a source repository on GitHub.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    owner: str
    """
    Owner (user or organization) of the repository.
    """

    name: str = Field(alias="project")
    """
    Repository name.  Spelled ``project`` in the configuration file.
    """

    @property
    def fscomp_name(self) -> str:
        """
        Name of the fscomp holding this projects sources, ``owner__name``.
        """
        return f"{self.owner}__{self.name}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


class BuildLang(BaseModel):
    """A language toolchain, e.g. ``rust`` ``stable``."""

    model_config = ConfigDict(frozen=True)

    name: str
    variant: str


class BuildOS(BaseModel):
    """An operating system release, e.g. ``FreeBSD`` ``12.0``."""

    model_config = ConfigDict(frozen=True)

    family: str
    version: str


class BuildJob(BaseModel):
    """
    One cell of the build matrix, built in its own pot.
    """

    model_config = ConfigDict(frozen=True)

    lang: BuildLang
    os: BuildOS

    deploy: bool = Field(default=True)
    """
    Whether the artifact of this job may be uploaded to a release.  Cleared by the
    ``no_deploy`` section of the build matrix.
    """

    @property
    def image_name(self) -> str:
        """
        Name of the base pot this job is cloned from.  Pot names may not contain dots,
        so those are replaced with underscores.
        """
        name = f"{self.os.family}-{self.os.version}-{self.lang.name}-{self.lang.variant}"
        return name.replace(".", "_")

    def artifact_name(self, project: Project) -> str:
        """Filename of the release asset this job produces."""
        return f"{self.os.family}-{self.os.version}-{project.name}.tar.gz"

    def with_deploy(self, deploy: bool) -> "BuildJob":
        return self.model_copy(update=dict(deploy=deploy))

    def __str__(self) -> str:
        return self.image_name


class Asset(BaseModel):
    """A file already attached to a GitHub release."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class BuildOpt(BaseModel):
    """
    Options common to all jobs of a run.
    """

    model_config = ConfigDict(frozen=True)

    update: bool = Field(default=False)
    """
    If ``True``, toolchain packages are refreshed before building.
    """

    release_id: int | None = Field(default=None)
    """
    ID of the release matching the requested tag.  ``None`` if no tag was requested,
    or no release exists for it, in which case nothing is uploaded.
    """

    assets: list[Asset] = Field(default_factory=list)
    """
    Assets already attached to that release.  An asset with the same name as a new
    artifact is deleted before the upload.
    """

    def find_asset(self, name: str) -> Asset | None:
        return next((asset for asset in self.assets if asset.name == name), None)

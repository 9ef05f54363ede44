# Build script generation.
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
This module renders the shell script executed inside each builder pot.

The script is a Jinja2 template, ``build.sh``, rendered with the variables of
:py:class:`BuildScriptVariables`.  Undefined variables are errors.
"""

import logging
import os
import os.path as path

import jinja2
from pydantic import BaseModel, Field

import bsdci.utils.fs as bcu_fs
from bsdci.constants import BUILD_SCRIPT_NAME
from bsdci.data.build import BuildJob, BuildOpt, Project
from bsdci.errors import TemplateParseError, TemplateRenderError

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = path.join(path.dirname(__file__), "templates")
"""Location of the templates shipped with bsd-ci."""


class BuildScriptVariables(BaseModel):
    """
    Every variable a build script template can use.  Defaults are inert: a script
    rendered from defaults builds nothing special and uploads nothing.
    """

    update: bool = Field(default=False)
    """Refresh the toolchain before building."""

    language: str = Field(default="")
    language_variant: str = Field(default="")
    os_family: str = Field(default="")
    os_version: str = Field(default="")
    project_owner: str = Field(default="")
    project_name: str = Field(default="")

    artifact_name: str = Field(default="")
    """
    Filename of the archive to produce, ``<os_family>-<os_version>-<project>.tar.gz``.
    """

    upload: bool = Field(default=False)
    """Upload the archive to the release ``release_id``."""

    token: str = Field(default="")
    """GitHub token to upload with.  Empty unless ``upload`` is set."""

    release_id: int = Field(default=0)

    delete_asset: bool = Field(default=False)
    """
    The release already has an asset named ``artifact_name``, with ID ``asset_id``,
    which must be deleted before uploading the new one.
    """

    asset_id: int = Field(default=0)

    @classmethod
    def for_job(
        cls, job: BuildJob, project: Project, build_opt: BuildOpt, token: str
    ) -> "BuildScriptVariables":
        """
        Computes the variables for building ``job``.  Upload variables are only set if
        a release was found for this run and ``job`` is deployable.
        """
        artifact_name = job.artifact_name(project)
        variables = cls(
            update=build_opt.update,
            language=job.lang.name,
            language_variant=job.lang.variant,
            os_family=job.os.family,
            os_version=job.os.version,
            project_owner=project.owner,
            project_name=project.name,
            artifact_name=artifact_name,
        )
        if build_opt.release_id is None or not job.deploy:
            return variables

        existing = build_opt.find_asset(artifact_name)
        return variables.model_copy(
            update=dict(
                upload=True,
                token=token,
                release_id=build_opt.release_id,
                delete_asset=existing is not None,
                asset_id=existing.id if existing else 0,
            )
        )


class BuildScriptRenderer:
    """
    Renders the ``template_name`` template found in ``template_dir``.
    """

    def __init__(
        self, template_dir: str = DEFAULT_TEMPLATE_DIR, template_name: str = BUILD_SCRIPT_NAME
    ) -> None:
        self.template_dir = template_dir
        self.template_name = template_name
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(template_dir),
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def _load(self) -> jinja2.Template:
        try:
            return self._env.get_template(self.template_name)
        except jinja2.TemplateNotFound as e:
            raise TemplateParseError(
                f"template {e.name} not found in {self.template_dir}"
            ) from e
        except jinja2.TemplateSyntaxError as e:
            raise TemplateParseError(f"{e.name or self.template_name}:{e.lineno}: {e}") from e

    def render(self, variables: BuildScriptVariables) -> str:
        """
        Renders the build script.

        Raises:
          TemplateParseError: The template is missing or malformed.
          TemplateRenderError: Rendering failed, most likely on an undefined variable.
        """
        template = self._load()
        try:
            return template.render(variables.model_dump())
        except jinja2.TemplateError as e:
            raise TemplateRenderError(str(e)) from e


def install_build_script(pot_root: str, script: str) -> str:
    """
    Writes ``script`` as the executable ``/root/build.sh`` of the pot whose directory
    is ``pot_root``.

    Returns:
      The path of the script on the host.
    """
    script_path = path.join(pot_root, "m", "root", BUILD_SCRIPT_NAME)
    logger.debug("creating the build script %s", script_path)
    os.makedirs(path.dirname(script_path), exist_ok=True)
    with bcu_fs.atomic_write_open(script_path, "w", permissions=0o755) as f:
        f.write(script)
    return script_path

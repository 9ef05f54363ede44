# Configuration file models
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
Data models and validation schemas for configuration files.
"""

import enum
import logging
import sys
import typing as T

import toml
from pydantic import BaseModel, Field, ValidationError

from bsdci.data.build import Project

logger = logging.getLogger(__name__)


class LoggingConfig(BaseModel):
    """
    Common logging configuration.
    """

    debug: bool = Field(default=False)
    """
    If ``true``, enables logging the debug level.  This includes every ``pot`` and
    ``git`` command run.
    """


class TokensConfig(BaseModel):
    github: str
    """
    GitHub personal access token.  Used to query the repository and its releases,
    and handed to build scripts that upload release assets.
    """


class FailurePolicy(enum.Enum):
    """
    What to do with the resources of a run that failed half way through.
    """

    LEAVE = "leave"
    """
    Leave the pot of the failed job and the source fscomp in place, for inspection.
    A later run needs ``-f`` to replace them.
    """

    CLEANUP = "cleanup"
    """
    Destroy the pot of the failed job and the source fscomp before reporting the
    error.
    """


class BuildConfig(BaseModel):
    """
    Options of the builder.
    """

    template_dir: str | None = Field(default=None)
    """
    Directory holding the ``build.sh`` template.  Defaults to the template shipped
    with bsd-ci.
    """

    log_dir: str = Field(default=".")
    """
    Directory in which the ``<pot>.log`` and ``<pot>_err.log`` files are written.
    """

    on_failure: FailurePolicy = Field(default=FailurePolicy.LEAVE)
    """
    See :py:class:`FailurePolicy`.
    """


class MatrixConfig(BaseModel):
    """
    Values accepted in the ``language`` and ``os`` keys of a build matrix.  Base pots
    must be provisioned for every combination used.
    """

    languages: set[str] = Field(default_factory=lambda: {"rust"})
    systems: set[str] = Field(default_factory=lambda: {"FreeBSD"})


class CiConfig(BaseModel):
    """
    Configuration model for ``bsd-ci``.
    """

    log: LoggingConfig = Field(default_factory=LoggingConfig)
    """
    Logger configuration.  See :py:class:`LoggingConfig`.
    """

    tokens: TokensConfig

    projects: T.Annotated[list[Project], Field(min_length=1)]
    """
    Projects known to this CI.  Unless one is picked on the command line, the first
    one is built.
    """

    build: BuildConfig = Field(default_factory=BuildConfig)

    matrix: MatrixConfig = Field(default_factory=MatrixConfig)

    def find_project(self, slug: str) -> Project | None:
        """
        Looks up a project by its ``owner/name`` slug.
        """
        owner, _, name = slug.partition("/")
        return next(
            (p for p in self.projects if p.owner == owner and p.name == name),
            None,
        )


M = T.TypeVar("M", bound=BaseModel)


def load_and_validate_config(config_file: str, model: type[M]) -> M:
    """
    Validate and load a config file as the given model.

    Args:
      config_file: Path of the file to open
      model: A Pydantic model by which to validate the loaded config

    Returns:
      A parsed config.

    Raises:
      SystemExit: if configuration parsing fails.  Exit code 1.
    """

    logger.debug("reading configuration file %s", config_file)
    try:
        with open(config_file, "r") as config:
            return model.model_validate(toml.load(config))
    except (ValidationError, toml.TomlDecodeError):
        logger.exception("failed to parse config")
        sys.exit(1)
    except Exception:
        logger.exception("failed to load config")
        sys.exit(1)

# Command line entry point.
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
The ``bsd-ci`` command: fetches a project from GitHub and builds its matrix.
"""

import argparse
import logging
import os.path as path
import shutil
import sys

import requests

import bsdci.github as github
import bsdci.utils.logging as bcu_logging
from bsdci.builder import Builder, RunOptions
from bsdci.constants import BUILD_MATRIX_FILE, POT_EXECUTABLE
from bsdci.data.build import BuildOpt, Project
from bsdci.data.config import CiConfig, load_and_validate_config
from bsdci.errors import BsdCiError, MatrixError
from bsdci.matrix import read_build_matrix
from bsdci.pot import PotManager
from bsdci.script import DEFAULT_TEMPLATE_DIR, BuildScriptRenderer
from bsdci.utils.argparse import create_root_parser

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = create_root_parser("Build GitHub projects in FreeBSD pot jails")
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="replace pots and fscomps left behind by a previous run",
    )
    parser.add_argument("-t", "--tag", help="tag to build, and release to upload to")
    parser.add_argument(
        "-n",
        "--render-only",
        action="store_true",
        help="print the build script of the first job instead of building",
    )
    parser.add_argument(
        "-p",
        "--project",
        metavar="OWNER/NAME",
        help="project to build (default: the first configured project)",
    )
    parser.add_argument("--template-dir", help="directory holding the build.sh template")
    parser.add_argument("--log-dir", help="directory receiving the build logs")
    return parser


def select_project(cfg: CiConfig, slug: str | None) -> Project:
    if slug is None:
        return cfg.projects[0]
    project = cfg.find_project(slug)
    if project is None:
        raise BsdCiError(f"Unknown project {slug}")
    return project


def query_github(
    cfg: CiConfig, project: Project, tag: str | None
) -> tuple[github.RepoStatus, github.Release | None]:
    """
    Fetches the status of ``project`` and, if ``tag`` is given, its release.
    """
    token = cfg.tokens.github
    with requests.Session() as session:
        status, remaining = github.get_status(session, project, token)
        logger.info("repository %s:\n%s", project, status)
        if status.is_archived:
            logger.warning("%s is archived", project)

        release = None
        if tag is not None:
            release, remaining = github.get_release(session, project, tag, token)
            if release is not None:
                logger.info("uploading to release %d (%s)", release.id, release.tag_name)
    logger.debug("GitHub requests left: %d", remaining)
    return status, release


def run(cfg: CiConfig, args: argparse.Namespace) -> None:
    """Builds the selected project."""
    project = select_project(cfg, args.project)
    if shutil.which(POT_EXECUTABLE) is None:
        raise BsdCiError(f"{POT_EXECUTABLE} not found in PATH")

    status, release = query_github(cfg, project, args.tag)

    options = RunOptions(
        force=args.force,
        render_only=args.render_only,
        log_dir=args.log_dir or cfg.build.log_dir,
        on_failure=cfg.build.on_failure,
    )
    renderer = BuildScriptRenderer(
        args.template_dir or cfg.build.template_dir or DEFAULT_TEMPLATE_DIR
    )
    builder = Builder(PotManager(), project, renderer, options, token=cfg.tokens.github)

    fscomp_path = builder.prepare_source(status.url, args.tag)
    try:
        queue, update = read_build_matrix(
            path.join(fscomp_path, BUILD_MATRIX_FILE),
            cfg.matrix.languages,
            cfg.matrix.systems,
        )
    except MatrixError:
        builder.discard_source()
        raise

    build_opt = BuildOpt(
        update=update,
        release_id=release.id if release else None,
        assets=release.assets if release else [],
    )
    builder.build(queue, build_opt)


def main() -> None:
    args = create_parser().parse_args()
    cfg = load_and_validate_config(args.config, CiConfig)
    bcu_logging.apply_logging_config(cfg.log, verbose=args.verbose)

    try:
        run(cfg, args)
    except BsdCiError as e:
        logger.error("error: %s", e.message)
        sys.exit(1)
    except OSError as e:
        logger.error("error: %s", e)
        sys.exit(1)

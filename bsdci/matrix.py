# Build matrix parsing.
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
This module reads the ``.bsd-ci.yml`` build matrix of a repository.  A matrix is
one or more YAML documents like::

    language: rust
    os: FreeBSD
    rust:
      - stable
      - nightly
    FreeBSD:
      - '11.2'
      - '12.0'
    update: true
    no_deploy:
      rust:
        - nightly

Each document yields the cross product of its OS versions and language variants.
OS versions must be quoted, lest YAML reads them as numbers.
"""

import logging
import typing as T

import yaml

from bsdci.data.build import BuildJob, BuildLang, BuildOS
from bsdci.errors import GenericError, InvalidType, MissingKey

logger = logging.getLogger(__name__)

MatrixDocument: T.TypeAlias = dict[T.Any, T.Any]


def _get_str(doc: MatrixDocument, key: str) -> str:
    if key not in doc:
        raise MissingKey(key)
    value = doc[key]
    if not isinstance(value, str):
        raise InvalidType(key)
    return value


def _get_str_list(doc: MatrixDocument, key: str, what: str) -> list[str]:
    if key not in doc:
        raise MissingKey(key)
    values = doc[key]
    if not isinstance(values, list):
        raise InvalidType(key)
    if not all(isinstance(v, str) for v in values):
        raise GenericError(f"{what} array has invalid type")
    return values


def get_lang(doc: MatrixDocument) -> str:
    """Returns the ``language`` of a matrix document."""
    return _get_str(doc, "language")


def get_os(doc: MatrixDocument) -> str:
    """Returns the ``os`` of a matrix document."""
    return _get_str(doc, "os")


def get_build_lang(lang: str, doc: MatrixDocument) -> list[BuildLang]:
    """Returns the variants of ``lang`` listed in the document."""
    return [BuildLang(name=lang, variant=v) for v in _get_str_list(doc, lang, "Language")]


def get_build_os(os_family: str, doc: MatrixDocument) -> list[BuildOS]:
    """Returns the versions of ``os_family`` listed in the document."""
    return [BuildOS(family=os_family, version=v) for v in _get_str_list(doc, os_family, "OS")]


def get_update(doc: MatrixDocument) -> bool:
    if "update" not in doc:
        logger.debug("update not found: default to false")
        return False
    update = doc["update"]
    if not isinstance(update, bool):
        raise InvalidType("update")
    return update


def apply_no_deploy(doc: MatrixDocument, jobs: list[BuildJob]) -> list[BuildJob]:
    """
    Applies the ``no_deploy`` rules of ``doc`` to ``jobs``.  A job is not deployed if
    its language variant is listed under its language, or if its OS version is listed
    under its OS family.  Every rule is applied, so a job matching any of them is
    excluded.

    Returns:
      The jobs, with ``deploy`` cleared where a rule matched.
    """
    rules = doc.get("no_deploy")
    if rules is None:
        return jobs
    if not isinstance(rules, dict):
        raise InvalidType("no_deploy")

    for key, values in rules.items():
        if not isinstance(values, list):
            raise InvalidType(f"no_deploy.{key}")

    def excluded(job: BuildJob) -> bool:
        return (
            job.lang.variant in rules.get(job.lang.name, ())
            or job.os.version in rules.get(job.os.family, ())
        )

    return [job.with_deploy(False) if excluded(job) else job for job in jobs]


def parse_document(
    doc: T.Any, languages: T.Collection[str], systems: T.Collection[str]
) -> tuple[list[BuildJob], bool]:
    """
    Expands a single matrix document.

    Returns:
      The jobs of the document, OS-major, and whether the toolchain should be updated.
    """
    if not isinstance(doc, dict):
        raise GenericError("a build matrix document must be a mapping")
    logger.debug("matrix document: %r", doc)

    lang = get_lang(doc)
    os_family = get_os(doc)
    if lang not in languages:
        raise GenericError("language not supported")
    if os_family not in systems:
        raise GenericError("os not supported")

    build_langs = get_build_lang(lang, doc)
    build_oses = get_build_os(os_family, doc)
    jobs = [BuildJob(lang=bl, os=bo) for bo in build_oses for bl in build_langs]
    return apply_no_deploy(doc, jobs), get_update(doc)


def read_build_matrix(
    matrix_file: str, languages: T.Collection[str], systems: T.Collection[str]
) -> tuple[list[BuildJob], bool]:
    """
    Reads the build matrix in ``matrix_file``.

    Returns:
      The build queue, and whether any document asked for a toolchain update.
    """
    try:
        with open(matrix_file, "r") as f:
            docs = [doc for doc in yaml.safe_load_all(f) if doc is not None]
    except OSError as e:
        raise GenericError(f"cannot read {matrix_file}: {e.strerror}") from e
    except yaml.YAMLError as e:
        raise GenericError(f"cannot parse {matrix_file}: {e}") from e

    if not docs:
        raise GenericError("empty build matrix")

    queue: list[BuildJob] = []
    update = False
    for doc in docs:
        jobs, doc_update = parse_document(doc, languages, systems)
        queue.extend(jobs)
        update = update or doc_update

    for job in queue:
        logger.info("queued %s (deploy: %s)", job.image_name, job.deploy)
    return queue, update

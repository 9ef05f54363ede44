# GitHub API client.
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
This module queries GitHub for what bsd-ci needs to know about a repository: where
to clone it from, and which release (and existing assets) a tag corresponds to.
"""

import datetime
import json
import logging
import typing as T
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bsdci.data.build import Asset, Project
from bsdci.errors import GithubApiError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

_STATUS_QUERY = """\
query {
  repository(owner: %(owner)s, name: %(name)s) {
    isPrivate isArchived isLocked updatedAt url
  }
  user(login: %(owner)s) { email }
}"""


class RepoStatus(BaseModel):
    """
    State of a GitHub repository.
    """

    model_config = ConfigDict(populate_by_name=True)

    is_private: bool = Field(alias="isPrivate")
    is_archived: bool = Field(alias="isArchived")
    is_locked: bool = Field(alias="isLocked")
    url: str
    """
    Web URL of the repository.  Git accepts it as a clone URL.
    """
    updated_at: datetime.datetime = Field(alias="updatedAt")
    email: str | None = Field(default=None)
    """
    Public email of the repository owner, if any.
    """

    def __str__(self) -> str:
        return (
            f"  url: {self.url}\n  private: {self.is_private}\n  archived: {self.is_archived}\n"
            f"  locked: {self.is_locked}\n  updated at: {self.updated_at}"
        )


class Release(BaseModel):
    """A GitHub release, as far as asset uploads care."""

    id: int
    tag_name: str
    assets: list[Asset] = Field(default_factory=list)


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"token {token}", "Accept": "application/vnd.github+json"}


def get_requests_remaining(headers: T.Mapping[str, str]) -> int:
    """
    Returns the remaining API rate limit, as reported by GitHub.  Zero if unknown.
    """
    try:
        return int(headers.get("X-RateLimit-Remaining", 0))
    except ValueError:
        return 0


def parse_status_reply(reply: T.Any) -> RepoStatus:
    """
    Extracts a :py:class:`RepoStatus` from a decoded GraphQL reply.
    """
    if not isinstance(reply, dict):
        raise GithubApiError("unexpected reply to the repository query")
    if reply.get("errors"):
        messages = "; ".join(str(e.get("message", e)) for e in reply["errors"])
        raise GithubApiError(messages)
    try:
        data = reply["data"]
        user = data.get("user") or {}
        return RepoStatus.model_validate(dict(data["repository"], email=user.get("email")))
    except (KeyError, TypeError, ValidationError) as e:
        raise GithubApiError(f"malformed repository reply: {e}") from e


def parse_release_reply(reply: T.Any) -> Release:
    try:
        return Release.model_validate(reply)
    except ValidationError as e:
        raise GithubApiError(f"malformed release reply: {e}") from e


def get_status(
    session: requests.Session, project: Project, token: str
) -> tuple[RepoStatus, int]:
    """
    Queries the status of ``project``.

    Returns:
      The repository status, and the number of API requests left.
    """
    query = _STATUS_QUERY % dict(
        owner=json.dumps(project.owner), name=json.dumps(project.name)
    )
    try:
        resp = session.post(
            f"{GITHUB_API_URL}/graphql",
            json=dict(query=query),
            headers=_auth_headers(token),
        )
        resp.raise_for_status()
        reply = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise GithubApiError(f"repository query for {project} failed: {e}") from e

    remaining = get_requests_remaining(resp.headers)
    logger.debug("requests left: %d", remaining)
    status = parse_status_reply(reply)
    logger.debug("last update of %s: %s", project, status.updated_at)
    return status, remaining


def get_release(
    session: requests.Session, project: Project, tag: str, token: str
) -> tuple[Release | None, int]:
    """
    Looks up the release of ``project`` tagged ``tag``.

    Returns:
      The release, or ``None`` if there is no such release, and the number of API
      requests left.
    """
    url = (
        f"{GITHUB_API_URL}/repos/{quote(project.owner, '')}/{quote(project.name, '')}"
        f"/releases/tags/{quote(tag, '')}"
    )
    try:
        resp = session.get(url, headers=_auth_headers(token))
        remaining = get_requests_remaining(resp.headers)
        if resp.status_code == 404:
            logger.info("no release found for tag %s", tag)
            return None, remaining
        resp.raise_for_status()
        reply = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise GithubApiError(f"release query for {project} tag {tag} failed: {e}") from e

    return parse_release_reply(reply), remaining

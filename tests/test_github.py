from unittest import mock

import pytest
import requests

from bsdci import github
from bsdci.errors import GithubApiError

STATUS_REPLY = {
    "data": {
        "repository": {
            "isPrivate": False,
            "isArchived": False,
            "isLocked": False,
            "updatedAt": "2019-02-03T10:20:30Z",
            "url": "https://github.com/pizzamig/potnet",
        },
        "user": {"email": "pizzamig@example.org"},
    }
}

RELEASE_REPLY = {
    "id": 42,
    "tag_name": "v0.1.0",
    "assets": [{"id": 7, "name": "FreeBSD-12.0-potnet.tar.gz", "size": 1024}],
}


def make_session(status_code=200, body=None, remaining="4999"):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.headers = {"X-RateLimit-Remaining": remaining}
    resp.json.return_value = body
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    session = mock.Mock()
    session.post.return_value = resp
    session.get.return_value = resp
    return session


def test_parse_status_reply():
    status = github.parse_status_reply(STATUS_REPLY)
    assert status.url == "https://github.com/pizzamig/potnet"
    assert not status.is_archived
    assert status.email == "pizzamig@example.org"
    assert status.updated_at.year == 2019


def test_parse_status_reply_errors():
    with pytest.raises(GithubApiError) as e:
        github.parse_status_reply({"errors": [{"message": "Could not resolve"}]})
    assert "Could not resolve" in e.value.message
    with pytest.raises(GithubApiError):
        github.parse_status_reply({"data": {"repository": None}})
    with pytest.raises(GithubApiError):
        github.parse_status_reply([])


def test_requests_remaining():
    assert github.get_requests_remaining({"X-RateLimit-Remaining": "12"}) == 12
    assert github.get_requests_remaining({}) == 0
    assert github.get_requests_remaining({"X-RateLimit-Remaining": "many"}) == 0


def test_get_status(project):
    session = make_session(body=STATUS_REPLY)
    status, remaining = github.get_status(session, project, "secret")

    assert status.url == "https://github.com/pizzamig/potnet"
    assert remaining == 4999
    url = session.post.call_args.args[0]
    kwargs = session.post.call_args.kwargs
    assert url == "https://api.github.com/graphql"
    assert kwargs["headers"]["Authorization"] == "token secret"
    assert 'repository(owner: "pizzamig", name: "potnet")' in kwargs["json"]["query"]


def test_get_status_transport_error(project):
    session = make_session(status_code=502)
    with pytest.raises(GithubApiError):
        github.get_status(session, project, "secret")


def test_get_release(project):
    session = make_session(body=RELEASE_REPLY)
    release, _ = github.get_release(session, project, "v0.1.0", "secret")
    assert release.id == 42
    assert [asset.name for asset in release.assets] == ["FreeBSD-12.0-potnet.tar.gz"]
    assert session.get.call_args.args[0] == (
        "https://api.github.com/repos/pizzamig/potnet/releases/tags/v0.1.0"
    )


def test_get_release_missing(project):
    release, remaining = github.get_release(make_session(404), project, "v9", "secret")
    assert release is None
    assert remaining == 4999


def test_get_release_malformed(project):
    with pytest.raises(GithubApiError):
        github.get_release(make_session(body={"tag_name": "v0.1.0"}), project, "v0.1.0", "x")

# Error taxonomy.
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
Every failure bsd-ci reports.  Each error carries the names of the resources it
concerns, so that the message alone is enough to diagnose a failed run.

None of these are retried internally, except for pot destruction, which only
raises :py:class:`ContainerDestroyFailed` after its deadline.
"""


class BsdCiError(Exception):
    """Base class of all bsd-ci errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# Resource existence conflicts.


class BaseImageNotPresent(BsdCiError):
    """The base pot a build job should be cloned from does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing pot: {name}")
        self.name = name


class ContainerAlreadyExists(BsdCiError):
    """A builder pot with the same name is left over from a previous run."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Pot {name} already present")
        self.name = name


class FscompAlreadyPresent(BsdCiError):
    """A source fscomp with the same name is left over from a previous run."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Fscomp {name} already present")
        self.name = name


# Failed pot invocations, one per lifecycle primitive.


class PotCommandError(BsdCiError):
    """A ``pot`` invocation exited with a non-zero status."""

    def __init__(self, message: str, name: str) -> None:
        super().__init__(message)
        self.name = name


class ContainerCloneFailed(PotCommandError):
    def __init__(self, name: str, parent: str) -> None:
        super().__init__(f"Pot clone failed on {name} from parent {parent}", name)
        self.parent = parent


class FscompAttachFailed(PotCommandError):
    def __init__(self, pot: str, fscomp: str, mount_point: str) -> None:
        super().__init__(f"Add fscomp {fscomp} to pot {pot} at {mount_point} failed", pot)
        self.pot = pot
        self.fscomp = fscomp
        self.mount_point = mount_point


class ContainerStartFailed(PotCommandError):
    """
    Either registering the startup command or starting the pot failed.  A pot exits
    with the status of its command, so this is also how a failed build surfaces; the
    output captured up to that point is kept in ``stdout`` and ``stderr``.
    """

    def __init__(self, name: str, stdout: bytes = b"", stderr: bytes = b"") -> None:
        super().__init__(f"Pot start failed on {name}", name)
        self.stdout = stdout
        self.stderr = stderr


class ContainerStopFailed(PotCommandError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Pot stop failed on {name}", name)


class ContainerDestroyFailed(PotCommandError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Pot destroy failed on {name}", name)


class FscompCreateFailed(PotCommandError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Fscomp create failed on {name}", name)


class FscompSnapshotFailed(PotCommandError):
    def __init__(self, name: str, snapshot: str) -> None:
        super().__init__(f"Fscomp snapshot failed on {name}@{snapshot}", name)
        self.snapshot = snapshot


class FscompRevertFailed(PotCommandError):
    def __init__(self, name: str, snapshot: str) -> None:
        super().__init__(f"Fscomp revert failed on {name}@{snapshot}", name)
        self.snapshot = snapshot


class FscompDestroyFailed(PotCommandError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Fscomp destroy failed on {name}", name)


# Source fetching.


class GitCloneFailed(BsdCiError):
    """
    ``git clone`` into the fscomp failed.  ``stderr`` holds what git said about it.
    """

    def __init__(self, url: str, path: str, stderr: str) -> None:
        super().__init__(f"Git clone failed from {url} to {path}: {stderr.strip()}")
        self.url = url
        self.path = path
        self.stderr = stderr


class GitCloneTagFailed(BsdCiError):
    """
    ``git clone --branch`` into the fscomp failed.  ``stderr`` holds what git said
    about it.
    """

    def __init__(self, url: str, path: str, tag: str, stderr: str) -> None:
        super().__init__(f"Git clone failed from {url} to {path} with tag {tag}: {stderr.strip()}")
        self.url = url
        self.path = path
        self.tag = tag
        self.stderr = stderr


# Templates.  These are configuration problems, not build failures.


class TemplateError(BsdCiError):
    def __init__(self, message: str, msg: str) -> None:
        super().__init__(message)
        self.msg = msg


class TemplateParseError(TemplateError):
    """The build script template could not be found or parsed."""

    def __init__(self, msg: str) -> None:
        super().__init__(f"Template parsing error: {msg}", msg)


class TemplateRenderError(TemplateError):
    """The build script template failed to render, e.g. on an undefined variable."""

    def __init__(self, msg: str) -> None:
        super().__init__(f"Template rendering error: {msg}", msg)


# Prefix lookups.


class FscompPrefixUnavailable(BsdCiError):
    def __init__(self) -> None:
        super().__init__("Not able to get the fscomp prefix")


class ContainerPrefixUnavailable(BsdCiError):
    def __init__(self) -> None:
        super().__init__("Not able to get the pot prefix")


# Collaborators.


class MatrixError(BsdCiError):
    """The build matrix document is malformed."""


class MissingKey(MatrixError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Missing key from the YAML: {key}")
        self.key = key


class InvalidType(MatrixError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Invalid type for the key {name}")
        self.name = name


class GenericError(MatrixError):
    def __init__(self, msg: str) -> None:
        super().__init__(f"Generic Error: {msg}")
        self.msg = msg


class GithubApiError(BsdCiError):
    """The GitHub API returned something unusable."""

    def __init__(self, msg: str) -> None:
        super().__init__(f"GitHub API error: {msg}")
        self.msg = msg

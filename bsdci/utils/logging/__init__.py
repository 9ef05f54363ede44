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
Logging setup of the ``bsd-ci`` command.

Messages about a build carry the project, and the job when there is one, through a
:py:class:`logging.LoggerAdapter`.  They are shown between the level and the logger
name::

    [2026-01-01 12:00:00+0000    INFO pizzamig/potnet FreeBSD-12_0-rust-stable] ...
"""

import logging
import typing as T

if T.TYPE_CHECKING:
    from bsdci.data.config import LoggingConfig


LOG_TS_FORMAT = "%Y-%m-%d %H:%M:%S%z"
"""Format that timestamps will be logged in."""

CONTEXT_FIELDS = ("project", "job")
"""Record attributes making up the context of a message, outermost first."""


def _get_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="[%(asctime)s %(levelname)7s%(bsdci_context)s] %(name)s: %(message)s",
        datefmt=LOG_TS_FORMAT,
    )


def format_context(record: logging.LogRecord) -> str:
    """
    Returns the context of ``record``, with a leading space, or an empty string if it
    has none.
    """
    parts = [str(getattr(record, field)) for field in CONTEXT_FIELDS if hasattr(record, field)]
    return "".join(f" {part}" for part in parts)


class ContextFormattingFilter(logging.Filter):
    """
    Sets the ``bsdci_context`` attribute the formatter expects.  Records are
    otherwise left alone, so other handlers still see the context fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.bsdci_context = format_context(record)
        return True


def create_stream_handler(stream: T.TextIO | None = None) -> logging.StreamHandler[T.TextIO]:
    handler = logging.StreamHandler(stream)
    handler.setFormatter(_get_formatter())
    handler.addFilter(ContextFormattingFilter())
    return handler


def apply_logging_config(config: "LoggingConfig", verbose: bool = False) -> None:
    """
    Sends log messages to standard error.  Debug messages, which include every
    external command run, are enabled by ``config.debug`` or ``verbose``.
    """
    root = logging.getLogger()
    root.addHandler(create_stream_handler())
    root.setLevel(logging.DEBUG if config.debug or verbose else logging.INFO)

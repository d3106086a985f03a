# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Error taxonomy for the release pipeline.

Each stage raises its own subclass so the orchestration layer can tell which
stage a platform job died in. None of these are retried.
"""


class ReleaseError(Exception):
    """Base for all release pipeline errors."""


class ResolutionError(ReleaseError):
    """The trigger ref matches neither a release tag nor the mainline branch."""


class BuildError(ReleaseError):
    """The build backend failed to produce an executable for a platform."""


class ArchiveError(ReleaseError):
    """Staging or compressing a platform's archive failed."""


class PublishError(ReleaseError):
    """The artifact store rejected or lost a write."""


class AggregationError(ReleaseError):
    """
    The checksum stage cannot produce a trustworthy manifest: an expected
    archive is missing or unreadable, or the group holds archives nobody
    expected.
    """

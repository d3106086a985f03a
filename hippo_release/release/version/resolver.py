# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release identifier resolution.

Every file the pipeline produces carries the release identifier in its name,
so it is resolved once per run from the trigger and reused everywhere:

    refs/tags/v2.0.0  → "v2.0.0"   (the ref minus "refs/tags/", byte-exact)
    refs/heads/main   → "canary"   (rolling build of the mainline branch)
    anything else     → ResolutionError

The pipeline is only ever triggered by those two kinds of push, so any other
ref means the trigger is misconfigured upstream.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from hippo_release.logging.logger import get_logger
from hippo_release.release.exceptions import ResolutionError

_logger: logging.Logger = get_logger(__name__)

TAG_REF_PREFIX = "refs/tags/"
RELEASE_TAG_PREFIX = "v"
BRANCH_REF_PREFIX = "refs/heads/"
DEFAULT_MAINLINE_BRANCH = "main"
DEFAULT_CANARY_LABEL = "canary"


class TriggerKind(enum.Enum):
    """What kind of push started the run."""

    TAG = "tag"
    MAINLINE = "mainline"


@dataclass(frozen=True)
class TriggerContext:
    """
    The trigger as the CI system reports it.

    `kind` is optional; when the caller knows it (e.g. from the event name)
    it is cross-checked against the ref.
    """

    ref: str
    kind: Optional[TriggerKind] = None


def classify_ref(ref: str, mainline_branch: str = DEFAULT_MAINLINE_BRANCH) -> Optional[TriggerKind]:
    """Return which trigger kind a ref belongs to, or None if neither."""
    if ref.startswith(TAG_REF_PREFIX + RELEASE_TAG_PREFIX):
        return TriggerKind.TAG
    if ref == BRANCH_REF_PREFIX + mainline_branch:
        return TriggerKind.MAINLINE
    return None


def _check_identifier(identifier: str, ref: str) -> None:
    # The identifier ends up in file names; reject what can't live there
    # rather than silently rewriting it.
    if "/" in identifier or "\\" in identifier:
        raise ResolutionError(
            f"Tag ref {ref!r} yields identifier {identifier!r}, which contains a path separator"
        )
    if any(c.isspace() for c in identifier):
        raise ResolutionError(
            f"Tag ref {ref!r} yields identifier {identifier!r}, which contains whitespace"
        )


def resolve_release_identifier(
    ref: str,
    mainline_branch: str = DEFAULT_MAINLINE_BRANCH,
    canary_label: str = DEFAULT_CANARY_LABEL,
) -> str:
    """
    Derive the release identifier from a git ref.

    Args:
        ref: Full ref name, e.g. "refs/tags/v1.2.3" or "refs/heads/main".
        mainline_branch: Branch whose pushes produce the rolling release.
        canary_label: Identifier used for the rolling release.

    Returns:
        The identifier to embed in archive and manifest names.

    Raises:
        ResolutionError: If the ref is neither a release tag nor the mainline head.
    """
    kind = classify_ref(ref, mainline_branch)

    if kind is TriggerKind.TAG:
        identifier = ref[len(TAG_REF_PREFIX):]
        _check_identifier(identifier, ref)
    elif kind is TriggerKind.MAINLINE:
        identifier = canary_label
    else:
        raise ResolutionError(
            f"Cannot derive a release identifier from ref {ref!r}: expected "
            f"'{TAG_REF_PREFIX}{RELEASE_TAG_PREFIX}*' or '{BRANCH_REF_PREFIX}{mainline_branch}'"
        )

    _logger.debug(
        "Release identifier resolved",
        extra={"ref": ref, "kind": kind.value, "release": identifier},
    )
    return identifier


def resolve_trigger(
    context: TriggerContext,
    mainline_branch: str = DEFAULT_MAINLINE_BRANCH,
    canary_label: str = DEFAULT_CANARY_LABEL,
) -> str:
    """
    Resolve a TriggerContext, checking the declared kind against the ref.

    Raises:
        ResolutionError: If the ref is unrecognized or contradicts `context.kind`.
    """
    if context.kind is not None:
        actual = classify_ref(context.ref, mainline_branch)
        if actual is not context.kind:
            raise ResolutionError(
                f"Trigger declared as {context.kind.value} push but ref {context.ref!r} "
                f"is {'not recognized' if actual is None else 'a ' + actual.value + ' ref'}"
            )
    return resolve_release_identifier(context.ref, mainline_branch, canary_label)

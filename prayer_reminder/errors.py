"""Error taxonomy for the reminder core."""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for failures surfaced by the reminder core."""


class PermissionDenied(ReminderError):
    """The user declined notification (or location) access.

    Schedulers do not raise this; they skip the pass and report it in the
    outcome. Hosts that need an exception can call ``outcome.raise_for_status()``.
    """


class TransientIOFailure(ReminderError):
    """A collaborator call (scheduling service, prayer-time source) failed.

    The pass that hit it is aborted. Nothing retries automatically; the next
    natural trigger runs a fresh full-replace pass.
    """

from __future__ import annotations


class NotConfiguredError(Exception):
    """No remote-model credential was supplied to the process."""


class NotStartedError(Exception):
    """A turn was submitted to a session that is not active."""


class RemoteTransportError(Exception):
    """The remote model could not be reached or returned an unusable reply."""


class MalformedToolArgumentsError(ValueError):
    """A tool handler rejected the arguments the model supplied."""

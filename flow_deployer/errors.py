"""Errors raised by the deployment pipeline.

Discovery failures are deliberately absent: they degrade to an empty
existing-tool baseline (see ``services.remote_config.discover``) and are
never surfaced to callers.
"""

from __future__ import annotations


class FlowDeployError(Exception):
    """Base class for every deploy pipeline failure."""


class FlowNotFound(FlowDeployError):
    """The flow does not exist or belongs to another client."""

    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        super().__init__(f"Flow not found: {flow_id}")


class AgentNotLinked(FlowDeployError):
    """The flow has no remote agent to deploy to."""

    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        super().__init__(f"Flow {flow_id} must be linked to an agent")


class RemotePushFailed(FlowDeployError):
    """The single write to the remote configuration API failed.

    Nothing was committed locally.  ``status_code`` is ``None`` for
    transport errors and timeouts.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class PersistenceConflict(FlowDeployError):
    """The stored flow version moved while the deploy was in flight.

    The remote push already happened; a retry should start again from
    discovery rather than resubmit the same payload.
    """

    def __init__(self, flow_id: str, expected_version: int, actual_version: int | None):
        self.flow_id = flow_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Flow {flow_id} changed during deploy "
            f"(expected version {expected_version}, found {actual_version})"
        )


class DeployCancelled(FlowDeployError):
    """The deploy was cancelled before the remote push was issued."""

"""Errors raised by the status reconciliation pass."""

from typing import Optional


class NodeFetchError(Exception):
    """Listing live nodes through the EMQX management API failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DeserializationError(NodeFetchError):
    """The management API answered 200 with a payload that is not a node list."""


class StatusPersistError(Exception):
    """Writing the status subresource of an instance failed."""

    def __init__(self, message: str, namespace: str, name: str):
        super().__init__(f"{message}: {namespace}/{name}")
        self.namespace = namespace
        self.name = name

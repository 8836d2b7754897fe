"""Fetches live cluster membership from the EMQX management API."""

import logging

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import DeserializationError, NodeFetchError
from .models import EMQXNode
from .requester import Requester

logger = logging.getLogger(__name__)

NODES_API_PATH = "api/v5/nodes"

_node_list = TypeAdapter(list[EMQXNode])


async def fetch_nodes(requester: Requester) -> list[EMQXNode]:
    """
    List the nodes currently in the EMQX cluster.

    One request, no retry: the next reconciliation pass retries.

    Args:
        requester: Requester bound to the instance

    Returns:
        Uncorrelated node records

    Raises:
        NodeFetchError: Transport failure or non-200 status
        DeserializationError: 200 with a body that is not a node list
    """
    try:
        response = await requester.request("GET", NODES_API_PATH)
    except httpx.HTTPError as e:
        raise NodeFetchError(f"failed to get API {NODES_API_PATH}: {e}") from e

    if response.status_code != 200:
        raise NodeFetchError(
            f"failed to get API {NODES_API_PATH}, "
            f"status: {response.status_code}, body: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )

    try:
        nodes = _node_list.validate_json(response.content)
    except ValidationError as e:
        raise DeserializationError(
            f"failed to unmarshal node statuses: {e}",
            status_code=response.status_code,
            body=response.text,
        ) from e

    logger.debug(f"Fetched {len(nodes)} nodes from {requester.base_url}")
    return nodes

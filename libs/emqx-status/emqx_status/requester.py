"""HTTP access to the EMQX management API of one instance."""

import logging
from typing import Any, Optional

import httpx
from kubernetes.client import V1Pod

from .config import Settings
from .correlator import controller_uid

logger = logging.getLogger(__name__)


class Requester:
    """Issues requests against one EMQX node's dashboard listener."""

    def __init__(
        self,
        host: str,
        port: int = 18083,
        username: str = "",
        password: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize requester.

        Args:
            host: Node address (pod IP or DNS name)
            port: Dashboard listener port
            username: API key
            password: API secret
            timeout: Per-request timeout in seconds
            transport: Optional transport override
        """
        self.host = host
        self.port = port
        self.base_url = f"http://{host}:{port}"
        auth = httpx.BasicAuth(username, password) if username else None
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    async def request(
        self, method: str, path: str, json: Optional[Any] = None
    ) -> httpx.Response:
        """
        Send a request to the management API.

        Args:
            method: HTTP method
            path: Path relative to the listener root, e.g. "api/v5/nodes"
            json: Optional JSON body

        Returns:
            The raw response; status codes are not checked here

        Raises:
            httpx.HTTPError: On transport failure
        """
        return await self.client.request(method, f"/{path.lstrip('/')}", json=json)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        await self.aclose()


def is_pod_ready(pod: V1Pod) -> bool:
    """Whether a pod is running with its Ready condition true."""
    status = pod.status
    if status is None or status.phase != "Running":
        return False
    for condition in status.conditions or []:
        if condition.type == "Ready":
            return condition.status == "True"
    return False


def build_requester(
    pods: list[V1Pod],
    settings: Settings,
    core_uid: str = "",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Requester]:
    """
    Build a requester against the first ready pod of the current core StatefulSet.

    Pods controlled by any other StatefulSet, such as one left over from a
    previous revision, are never used.

    Args:
        pods: Core tier pods of the instance
        settings: Controller settings (port, credentials, timeout)
        core_uid: UID of the StatefulSet backing the current core revision
        transport: Optional transport override

    Returns:
        Requester, or None when no core pod of that StatefulSet is ready
    """
    if not core_uid:
        return None

    ready = [
        p
        for p in pods
        if controller_uid(p) == core_uid and is_pod_ready(p) and p.status.pod_ip
    ]
    if not ready:
        return None

    pod = sorted(ready, key=lambda p: p.metadata.name)[0]
    logger.debug(f"Using pod {pod.metadata.name} ({pod.status.pod_ip}) for API requests")
    return Requester(
        host=pod.status.pod_ip,
        port=settings.dashboard_port,
        username=settings.api_username,
        password=settings.api_password,
        timeout=settings.request_timeout_seconds,
        transport=transport,
    )

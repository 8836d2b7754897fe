"""Runs one status reconciliation pass for an EMQX instance."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from kubernetes.client.exceptions import ApiException

from .cluster import ClusterConnection
from .correlator import correlate_nodes
from .errors import NodeFetchError, StatusPersistError
from .events import EVENT_TYPE_WARNING, EventRecorder
from .models import EMQXNode, Instance, ListOutcome
from .nodes import fetch_nodes
from .requester import Requester
from .revisions import RevisionResolver
from .state_machine import copy_replica_counts, next_status
from .workloads import WorkloadLister

logger = logging.getLogger(__name__)

REASON_FAILED_TO_GET_NODE_STATUSES = "FailedToGetNodeStatuses"


def utc_now() -> datetime:
    """Current time at the one-second precision of metav1.Time."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class StatusWriter:
    """Writes the status subresource of EMQX custom objects."""

    def __init__(
        self,
        cluster: ClusterConnection,
        group: str = "apps.emqx.io",
        version: str = "v2alpha2",
        plural: str = "emqxes",
    ):
        """
        Initialize status writer.

        Args:
            cluster: Cluster connection
            group: Custom resource API group
            version: Custom resource API version
            plural: Custom resource plural name
        """
        self.cluster = cluster
        self.custom_objects = cluster.custom_objects
        self.group = group
        self.version = version
        self.plural = plural

    def update(self, instance: Instance) -> None:
        """
        Replace the status of an instance.

        Args:
            instance: Instance carrying the status to persist

        Raises:
            StatusPersistError: If the API server rejects the write
        """
        try:
            result = self.custom_objects.replace_namespaced_custom_object_status(
                group=self.group,
                version=self.version,
                namespace=instance.namespace,
                plural=self.plural,
                name=instance.name,
                body=instance.status_body(),
            )
        except ApiException as e:
            raise StatusPersistError(
                f"failed to update status ({e.status} {e.reason})",
                instance.namespace,
                instance.name,
            ) from e
        except Exception as e:
            raise StatusPersistError(
                f"failed to update status ({e})", instance.namespace, instance.name
            ) from e

        if isinstance(result, dict):
            instance.resource_version = (result.get("metadata") or {}).get(
                "resourceVersion", instance.resource_version
            )


class StatusUpdater:
    """
    Reconcile orchestrator for instance status.

    Each pass:
    1. Resolve the workloads of both tiers (best effort)
    2. Mirror desired replica counts into the status
    3. Fetch live nodes when a requester is given, and correlate them with pods
    4. Run the status state machine
    5. Persist the new status

    Only the final write can fail a pass. A failed node fetch is recorded as
    a warning event and the previously recorded nodes are kept.
    """

    def __init__(
        self,
        lister: WorkloadLister,
        writer: StatusWriter,
        recorder: EventRecorder,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize status updater.

        Args:
            lister: Workload lister
            writer: Status writer
            recorder: Event recorder
            clock: Source of condition transition timestamps
        """
        self.lister = lister
        self.resolver = RevisionResolver(lister)
        self.writer = writer
        self.recorder = recorder
        self.clock = clock

    async def reconcile(
        self, instance: Instance, requester: Optional[Requester] = None
    ) -> Instance:
        """
        Run one reconciliation pass.

        Args:
            instance: EMQX instance as last read from the API server
            requester: Requester for the management API, None to skip node discovery

        Returns:
            The instance carrying the persisted status

        Raises:
            StatusPersistError: If the status write fails
        """
        existing = await asyncio.to_thread(self.resolver.resolve, instance)

        previous = instance.status.model_copy(deep=True)
        copy_replica_counts(previous, instance)

        nodes: Optional[list[EMQXNode]] = None
        if requester is not None:
            try:
                nodes = await self._get_nodes(instance, requester)
            except NodeFetchError as e:
                await asyncio.to_thread(
                    self.recorder.event,
                    instance,
                    EVENT_TYPE_WARNING,
                    REASON_FAILED_TO_GET_NODE_STATUSES,
                    str(e),
                )

        status = next_status(previous, instance, existing, nodes, now=self.clock())
        updated = instance.model_copy(update={"status": status})

        await asyncio.to_thread(self.writer.update, updated)

        logger.info(
            f"Updated status of {instance.namespace}/{instance.name}: "
            f"phase={status.phase.value if status.phase else None}, "
            f"core {status.core_nodes_status.ready_replicas}/"
            f"{status.core_nodes_status.replicas}"
        )
        return updated

    async def _get_nodes(self, instance: Instance, requester: Requester) -> list[EMQXNode]:
        """Fetch nodes from the management API and bind them to pods."""
        nodes = await fetch_nodes(requester)

        pods = await asyncio.to_thread(
            self.lister.list_pods, instance.namespace, instance.labels
        )
        if pods.outcome == ListOutcome.FAILED:
            logger.warning(
                f"Pods of {instance.namespace}/{instance.name} unavailable, "
                f"nodes left uncorrelated: {pods.error}"
            )
        return correlate_nodes(nodes, pods.items)

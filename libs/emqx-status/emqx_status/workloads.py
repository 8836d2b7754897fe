"""Best-effort listing of the workloads and pods owned by an instance."""

import logging
from typing import Any, Callable, Optional

from kubernetes.client.exceptions import ApiException

from .cluster import ClusterConnection
from .labels import label_selector
from .models import ListOutcome, ListResult

logger = logging.getLogger(__name__)


class WorkloadLister:
    """
    Lists StatefulSets, ReplicaSets and pods for the status pass.

    Listings never raise: a failure is logged and returned as a
    ListResult with outcome FAILED so the pass can degrade gracefully.
    """

    def __init__(self, cluster: ClusterConnection):
        """
        Initialize workload lister.

        Args:
            cluster: Cluster connection
        """
        self.cluster = cluster
        self.core_v1 = cluster.core_v1
        self.apps_v1 = cluster.apps_v1

    def _list(
        self,
        kind: str,
        list_fn: Callable[..., Any],
        namespace: str,
        labels: Optional[dict[str, str]],
    ) -> ListResult:
        selector = label_selector(labels)
        try:
            result = list_fn(namespace=namespace, label_selector=selector)
        except ApiException as e:
            logger.warning(
                f"Failed to list {kind} in {namespace} ({selector}): {e.status} {e.reason}"
            )
            return ListResult(outcome=ListOutcome.FAILED, error=str(e))
        except Exception as e:
            logger.warning(f"Failed to list {kind} in {namespace} ({selector}): {e}")
            return ListResult(outcome=ListOutcome.FAILED, error=str(e))

        items = list(result.items or [])
        outcome = ListOutcome.FOUND if items else ListOutcome.NOT_FOUND
        return ListResult(items=items, outcome=outcome)

    def list_stateful_sets(
        self, namespace: str, labels: Optional[dict[str, str]] = None
    ) -> ListResult:
        """List StatefulSets matching labels."""
        return self._list(
            "statefulsets", self.apps_v1.list_namespaced_stateful_set, namespace, labels
        )

    def list_replica_sets(
        self, namespace: str, labels: Optional[dict[str, str]] = None
    ) -> ListResult:
        """List ReplicaSets matching labels."""
        return self._list(
            "replicasets", self.apps_v1.list_namespaced_replica_set, namespace, labels
        )

    def list_pods(
        self, namespace: str, labels: Optional[dict[str, str]] = None
    ) -> ListResult:
        """List pods matching labels."""
        return self._list("pods", self.core_v1.list_namespaced_pod, namespace, labels)

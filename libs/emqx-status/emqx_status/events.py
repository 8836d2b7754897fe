"""Records Kubernetes events against EMQX instances."""

import logging
from datetime import datetime, timezone

from kubernetes.client import CoreV1Event, V1EventSource, V1ObjectMeta, V1ObjectReference
from kubernetes.client.exceptions import ApiException

from .cluster import ClusterConnection
from .models import Instance

logger = logging.getLogger(__name__)

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"

COMPONENT = "emqx-status-controller"


class EventRecorder:
    """Fire-and-forget event sink: API failures are logged, never raised."""

    def __init__(
        self,
        cluster: ClusterConnection,
        api_version: str = "apps.emqx.io/v2alpha2",
        kind: str = "EMQX",
    ):
        """
        Initialize event recorder.

        Args:
            cluster: Cluster connection
            api_version: API version of the involved object
            kind: Kind of the involved object
        """
        self.cluster = cluster
        self.core_v1 = cluster.core_v1
        self.api_version = api_version
        self.kind = kind

    def event(self, instance: Instance, event_type: str, reason: str, message: str) -> None:
        """
        Record an event against an instance.

        Args:
            instance: Involved EMQX instance
            event_type: EVENT_TYPE_NORMAL or EVENT_TYPE_WARNING
            reason: CamelCase reason code
            message: Human readable message
        """
        now = datetime.now(timezone.utc)
        body = CoreV1Event(
            metadata=V1ObjectMeta(
                generate_name=f"{instance.name}.",
                namespace=instance.namespace,
            ),
            involved_object=V1ObjectReference(
                api_version=self.api_version,
                kind=self.kind,
                name=instance.name,
                namespace=instance.namespace,
                uid=instance.uid or None,
                resource_version=instance.resource_version,
            ),
            type=event_type,
            reason=reason,
            message=message,
            count=1,
            first_timestamp=now,
            last_timestamp=now,
            source=V1EventSource(component=COMPONENT),
            reporting_component=COMPONENT,
        )

        try:
            self.core_v1.create_namespaced_event(namespace=instance.namespace, body=body)
        except ApiException as e:
            logger.error(
                f"Failed to record event {reason} for "
                f"{instance.namespace}/{instance.name}: {e.status} {e.reason}"
            )
            return
        except Exception as e:
            logger.error(
                f"Failed to record event {reason} for "
                f"{instance.namespace}/{instance.name}: {e}"
            )
            return

        log = logger.warning if event_type == EVENT_TYPE_WARNING else logger.info
        log(f"{instance.namespace}/{instance.name} {reason}: {message}")

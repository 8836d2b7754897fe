"""EMQX status controller - derives EMQX instance status from spec, workloads and live nodes."""

from .cluster import ClusterConnection
from .config import Settings, get_settings
from .correlator import correlate_nodes
from .errors import DeserializationError, NodeFetchError, StatusPersistError
from .events import EVENT_TYPE_NORMAL, EVENT_TYPE_WARNING, EventRecorder
from .models import (
    ClusterPhase,
    Condition,
    ConditionType,
    EMQXNode,
    Instance,
    InstanceSpec,
    InstanceStatus,
    ListOutcome,
    ListResult,
    NodeRole,
    NodesStatus,
    OwnedWorkload,
    TierTemplate,
    is_exist_replicant,
)
from .nodes import fetch_nodes
from .reconciler import InstanceStore, StatusReconciliationLoop
from .requester import Requester, build_requester
from .revisions import ExistingWorkloads, RevisionResolver
from .state_machine import next_status
from .status import StatusUpdater, StatusWriter
from .workloads import WorkloadLister

__version__ = "0.1.0"

__all__ = [
    # Cluster access
    "ClusterConnection",
    "WorkloadLister",
    "InstanceStore",
    "StatusWriter",
    "EventRecorder",
    "EVENT_TYPE_NORMAL",
    "EVENT_TYPE_WARNING",
    # Node discovery
    "Requester",
    "build_requester",
    "fetch_nodes",
    "correlate_nodes",
    # Status derivation
    "RevisionResolver",
    "ExistingWorkloads",
    "next_status",
    "StatusUpdater",
    "StatusReconciliationLoop",
    # Errors
    "NodeFetchError",
    "DeserializationError",
    "StatusPersistError",
    # Configuration
    "Settings",
    "get_settings",
    # Models
    "Instance",
    "InstanceSpec",
    "InstanceStatus",
    "TierTemplate",
    "NodesStatus",
    "EMQXNode",
    "NodeRole",
    "Condition",
    "ConditionType",
    "ClusterPhase",
    "OwnedWorkload",
    "ListOutcome",
    "ListResult",
    "is_exist_replicant",
]

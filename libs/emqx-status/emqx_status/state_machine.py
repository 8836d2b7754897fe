"""Derives the next status of an EMQX instance.

Everything here is pure: the functions take the previous status, the
instance spec, the workloads backing each tier and the correlated nodes,
and return a new InstanceStatus without touching their inputs.

Phase transitions:

    Initialized ──> CoreNodesProgressing ──> CoreNodesReady ──> Ready
                                   └──────────────────────────────┘
                                     (no replicant tier configured)

    Ready ──> Degraded   any tier drops below its desired ready count
    Degraded ──> Ready   every configured tier is ready again
"""

from datetime import datetime
from typing import Optional

from .models import (
    ClusterPhase,
    Condition,
    ConditionType,
    EMQXNode,
    Instance,
    InstanceStatus,
    ListOutcome,
    NodesStatus,
    OwnedWorkload,
)
from .revisions import ExistingWorkloads

REASON_AMBIGUOUS_REVISION = "AmbiguousRevision"


def copy_replica_counts(status: InstanceStatus, instance: Instance) -> None:
    """
    Mirror the desired replica counts into a status, in place.

    Allocates the replicant tier status when the tier is configured and
    drops it otherwise.
    """
    status.core_nodes_status.replicas = instance.core_replicas
    if instance.has_replicant:
        if status.replicant_nodes_status is None:
            status.replicant_nodes_status = NodesStatus()
        status.replicant_nodes_status.replicas = instance.replicant_replicas
    else:
        status.replicant_nodes_status = None


def count_ready_nodes(nodes: list[EMQXNode], workload: OwnedWorkload) -> int:
    """Running nodes whose pod is controlled by the given workload."""
    if not workload.exists:
        return 0
    return sum(1 for n in nodes if n.is_running and n.controller_uid == workload.uid)


def _update_tier(tier: NodesStatus, workload: OwnedWorkload) -> bool:
    tier.ready_replicas = count_ready_nodes(tier.nodes, workload)
    tier.current_replicas = workload.replicas
    return tier.ready_replicas == tier.replicas


def _condition(
    previous: InstanceStatus,
    condition_type: ConditionType,
    is_true: bool,
    reason: str,
    message: str,
    now: datetime,
) -> Condition:
    status = "True" if is_true else "False"
    last_transition_time = now
    old = previous.get_condition(condition_type.value)
    if old is not None and old.status == status and old.last_transition_time:
        last_transition_time = old.last_transition_time
    return Condition(
        type=condition_type.value,
        status=status,
        reason=reason,
        message=message,
        last_transition_time=last_transition_time,
    )


def _tier_reason(
    ready: bool,
    workload: OwnedWorkload,
    ambiguous: bool,
    outcome: Optional[ListOutcome],
    prefix: str,
) -> str:
    if ambiguous:
        return REASON_AMBIGUOUS_REVISION
    if ready:
        return f"{prefix}Ready"
    if outcome == ListOutcome.FAILED:
        return f"{prefix}ListFailed"
    if not workload.exists:
        return f"{prefix}WorkloadNotFound"
    return f"{prefix}Progressing"


def next_phase(
    previous: Optional[ClusterPhase],
    core_ready: bool,
    replicant_ready: bool,
    core_exists: bool,
) -> ClusterPhase:
    """
    Apply the phase transition table.

    Args:
        previous: Phase recorded by the previous pass
        core_ready: Core tier has all desired nodes ready
        replicant_ready: Replicant tier is ready or not configured
        core_exists: A StatefulSet backs the current core revision
    """
    if core_ready and replicant_ready:
        return ClusterPhase.READY
    if previous in (ClusterPhase.READY, ClusterPhase.DEGRADED):
        return ClusterPhase.DEGRADED
    if not core_ready:
        if not core_exists:
            return ClusterPhase.INITIALIZED
        return ClusterPhase.CORE_NODES_PROGRESSING
    return ClusterPhase.CORE_NODES_READY


def next_status(
    previous: InstanceStatus,
    instance: Instance,
    existing: ExistingWorkloads,
    nodes: Optional[list[EMQXNode]] = None,
    *,
    now: datetime,
) -> InstanceStatus:
    """
    Compute the status that follows the previous one.

    Args:
        previous: Status recorded by the previous pass
        instance: Instance carrying the desired spec
        existing: Workloads for the current revision of each tier
        nodes: Correlated nodes, None to keep the previously recorded ones
        now: Timestamp for conditions that change status

    Returns:
        New InstanceStatus
    """
    status = previous.model_copy(deep=True)
    copy_replica_counts(status, instance)

    source = previous.nodes if nodes is None else nodes
    status.set_nodes([n.model_copy() for n in source])

    core_ready = _update_tier(status.core_nodes_status, existing.core)
    replicant_ready = True
    if status.replicant_nodes_status is not None:
        replicant_ready = _update_tier(status.replicant_nodes_status, existing.replicant)

    status.phase = next_phase(
        previous.phase, core_ready, replicant_ready, existing.core.exists
    )

    core = status.core_nodes_status
    conditions = [
        _condition(
            previous,
            ConditionType.CORE_NODES_READY,
            core_ready,
            _tier_reason(
                core_ready,
                existing.core,
                existing.core_ambiguous,
                existing.core_outcome,
                "CoreNodes",
            ),
            f"{core.ready_replicas}/{core.replicas} core nodes ready",
            now,
        )
    ]

    replicant = status.replicant_nodes_status
    if replicant is not None:
        conditions.append(
            _condition(
                previous,
                ConditionType.REPLICANT_NODES_READY,
                replicant_ready,
                _tier_reason(
                    replicant_ready,
                    existing.replicant,
                    existing.replicant_ambiguous,
                    existing.replicant_outcome,
                    "ReplicantNodes",
                ),
                f"{replicant.ready_replicas}/{replicant.replicas} replicant nodes ready",
                now,
            )
        )

    ready = core_ready and replicant_ready
    if ready:
        reason, message = "ClusterReady", "all nodes are ready"
    elif not core_ready:
        reason, message = "CoreNodesNotReady", "waiting for core nodes"
    else:
        reason, message = "ReplicantNodesNotReady", "waiting for replicant nodes"
    conditions.append(
        _condition(previous, ConditionType.READY, ready, reason, message, now)
    )

    # Conditions owned by other controllers are carried over untouched
    managed = {c.value for c in ConditionType}
    conditions.extend(
        c.model_copy() for c in previous.conditions if c.type not in managed
    )
    status.conditions = conditions
    return status

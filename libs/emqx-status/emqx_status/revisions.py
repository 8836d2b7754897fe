"""Resolves the workloads currently backing each tier of an instance."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .labels import POD_TEMPLATE_HASH_LABEL_KEY, clone_and_add_label
from .models import Instance, ListOutcome, ListResult, OwnedWorkload
from .workloads import WorkloadLister

logger = logging.getLogger(__name__)

STATEFUL_SET = "StatefulSet"
REPLICA_SET = "ReplicaSet"


@dataclass
class ExistingWorkloads:
    """Workloads found for the current revision of each tier."""

    core: OwnedWorkload = field(default_factory=lambda: OwnedWorkload.placeholder(STATEFUL_SET))
    replicant: OwnedWorkload = field(default_factory=lambda: OwnedWorkload.placeholder(REPLICA_SET))
    core_ambiguous: bool = False
    replicant_ambiguous: bool = False
    core_outcome: ListOutcome = ListOutcome.NOT_FOUND
    replicant_outcome: Optional[ListOutcome] = None


def first_or_placeholder(result: ListResult, kind: str) -> OwnedWorkload:
    """
    First listed workload, or a placeholder when nothing matched.

    At most one workload carries a given revision hash per tier under
    correct rolling-update labeling; extra matches are flagged by the caller.
    """
    obj = result.first
    if obj is None:
        return OwnedWorkload.placeholder(kind)
    return OwnedWorkload.from_k8s(obj, kind)


class RevisionResolver:
    """Finds the StatefulSet and ReplicaSet pinned to each tier's current revision."""

    def __init__(self, lister: WorkloadLister):
        """
        Initialize revision resolver.

        Args:
            lister: Workload lister
        """
        self.lister = lister

    def resolve(self, instance: Instance) -> ExistingWorkloads:
        """
        Resolve both tiers of an instance.

        Args:
            instance: EMQX instance with its previously recorded status

        Returns:
            ExistingWorkloads, with placeholders for tiers without a match
        """
        existing = ExistingWorkloads()

        core_result = self.lister.list_stateful_sets(
            instance.namespace,
            clone_and_add_label(
                instance.spec.core_template.labels,
                POD_TEMPLATE_HASH_LABEL_KEY,
                instance.status.core_nodes_status.current_revision,
            ),
        )
        existing.core = first_or_placeholder(core_result, STATEFUL_SET)
        existing.core_ambiguous = core_result.ambiguous
        existing.core_outcome = core_result.outcome
        if core_result.ambiguous:
            logger.warning(
                f"{len(core_result.items)} StatefulSets share the current core revision "
                f"of {instance.namespace}/{instance.name}, using {existing.core.name}"
            )

        if instance.has_replicant and instance.spec.replicant_template is not None:
            replicant_status = instance.status.replicant_nodes_status
            current_revision = replicant_status.current_revision if replicant_status else ""
            replicant_result = self.lister.list_replica_sets(
                instance.namespace,
                clone_and_add_label(
                    instance.spec.replicant_template.labels,
                    POD_TEMPLATE_HASH_LABEL_KEY,
                    current_revision,
                ),
            )
            existing.replicant = first_or_placeholder(replicant_result, REPLICA_SET)
            existing.replicant_ambiguous = replicant_result.ambiguous
            existing.replicant_outcome = replicant_result.outcome
            if replicant_result.ambiguous:
                logger.warning(
                    f"{len(replicant_result.items)} ReplicaSets share the current replicant "
                    f"revision of {instance.namespace}/{instance.name}, "
                    f"using {existing.replicant.name}"
                )

        return existing

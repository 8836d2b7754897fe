"""Resource and status models for EMQX instances."""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .labels import POD_TEMPLATE_HASH_LABEL_KEY

# Defaults applied by the EMQX CRD when the template omits a replica count
DEFAULT_CORE_REPLICAS = 2
DEFAULT_REPLICANT_REPLICAS = 0


class NodeRole(str, Enum):
    """Role of an EMQX node in the cluster."""

    CORE = "core"
    REPLICANT = "replicant"


class ClusterPhase(str, Enum):
    """Coarse lifecycle state of an EMQX instance."""

    INITIALIZED = "Initialized"
    CORE_NODES_PROGRESSING = "CoreNodesProgressing"
    CORE_NODES_READY = "CoreNodesReady"
    READY = "Ready"
    DEGRADED = "Degraded"


class ConditionType(str, Enum):
    """Condition types maintained on the instance status."""

    CORE_NODES_READY = "CoreNodesReady"
    REPLICANT_NODES_READY = "ReplicantNodesReady"
    READY = "Ready"


class EMQXNode(BaseModel):
    """A cluster member as reported by the EMQX management API."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    node: str
    role: str
    # The management API only lists members that joined the cluster
    node_status: str = "running"
    otp_release: Optional[str] = None
    version: Optional[str] = None
    edition: Optional[str] = None
    uptime: Optional[int] = None
    connections: Optional[int] = None
    pod_uid: Optional[str] = Field(default=None, alias="podUID")
    controller_uid: Optional[str] = Field(default=None, alias="controllerUID")

    @property
    def host(self) -> str:
        """Host segment of the node name: text after '@' up to the first ':'."""
        return self.node.split("@", 1)[-1].split(":")[0]

    @property
    def is_running(self) -> bool:
        """Whether the node reports itself as running."""
        return self.node_status == "running"


class Condition(BaseModel):
    """Status condition in the Kubernetes metav1.Condition shape."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[datetime] = None

    @property
    def is_true(self) -> bool:
        return self.status == "True"


class NodesStatus(BaseModel):
    """Status of one tier of an EMQX instance."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    nodes: list[EMQXNode] = Field(default_factory=list)
    replicas: int = 0
    ready_replicas: int = 0
    current_replicas: int = 0
    current_revision: str = ""
    update_replicas: int = 0
    update_revision: str = ""


class InstanceStatus(BaseModel):
    """Persisted status of an EMQX instance."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phase: Optional[ClusterPhase] = None
    conditions: list[Condition] = Field(default_factory=list)
    core_nodes_status: NodesStatus = Field(default_factory=NodesStatus)
    replicant_nodes_status: Optional[NodesStatus] = None

    @field_validator("phase", mode="before")
    @classmethod
    def _drop_unknown_phase(cls, value: Any) -> Any:
        # Phases written by other controller versions restart the table
        if isinstance(value, str) and value not in {p.value for p in ClusterPhase}:
            return None
        return value

    @property
    def nodes(self) -> list[EMQXNode]:
        """All known nodes, core tier first."""
        nodes = list(self.core_nodes_status.nodes)
        if self.replicant_nodes_status is not None:
            nodes.extend(self.replicant_nodes_status.nodes)
        return nodes

    def set_nodes(self, nodes: list[EMQXNode]) -> None:
        """
        Partition nodes by role into the tier statuses.

        Replicant nodes are dropped when no replicant tier status exists.
        """
        self.core_nodes_status.nodes = [n for n in nodes if n.role == NodeRole.CORE.value]
        if self.replicant_nodes_status is not None:
            self.replicant_nodes_status.nodes = [
                n for n in nodes if n.role == NodeRole.REPLICANT.value
            ]

    def get_condition(self, condition_type: str) -> Optional[Condition]:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def is_ready(self) -> bool:
        """Whether the overall Ready condition is true."""
        condition = self.get_condition(ConditionType.READY.value)
        return condition is not None and condition.is_true

    def to_resource(self) -> dict[str, Any]:
        """Serialize in the CRD status schema."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _replicas(template: dict[str, Any], default: int) -> int:
    # An explicit null is treated like an omitted count
    replicas = (template.get("spec") or {}).get("replicas")
    return default if replicas is None else replicas


class TierTemplate(BaseModel):
    """Desired state of one tier."""

    labels: dict[str, str] = Field(default_factory=dict)
    replicas: Optional[int] = None


class InstanceSpec(BaseModel):
    """Desired state of an EMQX instance."""

    core_template: TierTemplate = Field(
        default_factory=lambda: TierTemplate(replicas=DEFAULT_CORE_REPLICAS)
    )
    replicant_template: Optional[TierTemplate] = None


class Instance(BaseModel):
    """An EMQX custom resource."""

    name: str
    namespace: str = "default"
    uid: str = ""
    resource_version: Optional[str] = None
    labels: dict[str, str] = Field(default_factory=dict)
    spec: InstanceSpec = Field(default_factory=InstanceSpec)
    status: InstanceStatus = Field(default_factory=InstanceStatus)
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)

    @classmethod
    def from_resource(cls, obj: dict[str, Any]) -> "Instance":
        """
        Build an instance from a custom object as returned by the API server.

        Args:
            obj: Raw EMQX custom object

        Returns:
            Parsed Instance
        """
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}

        core = spec.get("coreTemplate") or {}
        core_template = TierTemplate(
            labels=(core.get("metadata") or {}).get("labels") or {},
            replicas=_replicas(core, DEFAULT_CORE_REPLICAS),
        )

        replicant_template = None
        replicant = spec.get("replicantTemplate")
        if replicant is not None:
            replicant_template = TierTemplate(
                labels=(replicant.get("metadata") or {}).get("labels") or {},
                replicas=_replicas(replicant, DEFAULT_REPLICANT_REPLICAS),
            )

        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace", "default"),
            uid=metadata.get("uid", ""),
            resource_version=metadata.get("resourceVersion"),
            labels=metadata.get("labels") or {},
            spec=InstanceSpec(
                core_template=core_template,
                replicant_template=replicant_template,
            ),
            status=InstanceStatus.model_validate(obj.get("status") or {}),
            raw=obj,
        )

    @property
    def has_replicant(self) -> bool:
        """Whether a replicant tier is configured."""
        return is_exist_replicant(self)

    @property
    def core_replicas(self) -> int:
        return self.spec.core_template.replicas or 0

    @property
    def replicant_replicas(self) -> int:
        if self.spec.replicant_template is None:
            return 0
        return self.spec.replicant_template.replicas or 0

    def status_body(self) -> dict[str, Any]:
        """Full object body for a status subresource replace."""
        body = copy.deepcopy(self.raw) if self.raw else {}
        metadata = body.setdefault("metadata", {})
        metadata["name"] = self.name
        metadata["namespace"] = self.namespace
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        body["status"] = self.status.to_resource()
        return body


def is_exist_replicant(instance: Instance) -> bool:
    """Replicant tier exists when its template asks for at least one replica."""
    template = instance.spec.replicant_template
    return template is not None and (template.replicas or 0) > 0


@dataclass
class OwnedWorkload:
    """The StatefulSet or ReplicaSet currently backing one tier."""

    kind: str
    name: str = ""
    uid: str = ""
    replicas: int = 0
    revision: str = ""

    @classmethod
    def placeholder(cls, kind: str) -> "OwnedWorkload":
        """Zero-value record used when no workload matches."""
        return cls(kind=kind)

    @classmethod
    def from_k8s(cls, obj: Any, kind: str) -> "OwnedWorkload":
        """
        Extract the fields the status machine consumes.

        Args:
            obj: V1StatefulSet or V1ReplicaSet
            kind: Workload kind name
        """
        labels = obj.metadata.labels or {}
        replicas = obj.spec.replicas if obj.spec and obj.spec.replicas else 0
        return cls(
            kind=kind,
            name=obj.metadata.name or "",
            uid=obj.metadata.uid or "",
            replicas=replicas,
            revision=labels.get(POD_TEMPLATE_HASH_LABEL_KEY, ""),
        )

    @property
    def exists(self) -> bool:
        return bool(self.uid)


class ListOutcome(str, Enum):
    """How a best-effort listing ended."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class ListResult:
    """Result of a best-effort listing against the cluster."""

    items: list[Any] = field(default_factory=list)
    outcome: ListOutcome = ListOutcome.NOT_FOUND
    error: Optional[str] = None

    @property
    def first(self) -> Optional[Any]:
        return self.items[0] if self.items else None

    @property
    def ambiguous(self) -> bool:
        """More than one object matched where at most one is expected."""
        return len(self.items) > 1

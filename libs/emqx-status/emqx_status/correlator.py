"""Binds live EMQX nodes to the pods running them."""

from typing import Optional

from kubernetes.client import V1Pod

from .models import EMQXNode, NodeRole


def controller_uid(pod: V1Pod) -> Optional[str]:
    """UID of the pod's controlling owner, if any."""
    for ref in pod.metadata.owner_references or []:
        if ref.controller:
            return ref.uid
    return None


def matches_pod(node: EMQXNode, pod: V1Pod) -> bool:
    """
    Whether a node is served by a pod.

    Core nodes advertise their stable DNS name, which starts with the pod
    name followed by the headless service domain. Replicant nodes advertise
    the pod IP.
    """
    host = node.host
    if node.role == NodeRole.CORE.value:
        name = pod.metadata.name
        return bool(name) and (host == name or host.startswith(f"{name}."))
    if node.role == NodeRole.REPLICANT.value:
        pod_ip = pod.status.pod_ip if pod.status else None
        return bool(pod_ip) and host == pod_ip
    return False


def correlate_nodes(nodes: list[EMQXNode], pods: list[V1Pod]) -> list[EMQXNode]:
    """
    Attach pod and controller identities to each node.

    The inputs are left untouched; unmatched nodes come back uncorrelated.

    Args:
        nodes: Nodes reported by the management API
        pods: Pods of the instance

    Returns:
        New node list, same order as the input
    """
    correlated: list[EMQXNode] = []
    for node in nodes:
        pod = next((p for p in pods if matches_pod(node, p)), None)
        if pod is None:
            correlated.append(node.model_copy())
            continue
        correlated.append(
            node.model_copy(
                update={
                    "pod_uid": pod.metadata.uid,
                    "controller_uid": controller_uid(pod),
                }
            )
        )
    return correlated

"""Pytest configuration and fixtures for EMQX status tests."""

from typing import Optional
from unittest.mock import MagicMock, Mock

import pytest
from kubernetes import client

from emqx_status import Instance
from emqx_status.labels import POD_TEMPLATE_HASH_LABEL_KEY

INSTANCE_LABELS = {"apps.emqx.io/instance": "broker", "apps.emqx.io/managed-by": "emqx-operator"}
CORE_LABELS = {**INSTANCE_LABELS, "apps.emqx.io/db-role": "core"}
REPLICANT_LABELS = {**INSTANCE_LABELS, "apps.emqx.io/db-role": "replicant"}



def _parse_selector(selector: Optional[str]) -> dict[str, str]:
    if not selector:
        return {}
    return dict(part.split("=", 1) for part in selector.split(","))


def _matching(items, label_selector=None):
    wanted = _parse_selector(label_selector)
    return [
        item
        for item in items
        if all((item.metadata.labels or {}).get(k) == v for k, v in wanted.items())
    ]


class FakeCluster:
    """Mock cluster connection whose list calls filter by label selector."""

    def __init__(self):
        self.stateful_sets: list = []
        self.replica_sets: list = []
        self.pods: list = []

        self.core_v1 = MagicMock(spec=client.CoreV1Api)
        self.apps_v1 = MagicMock(spec=client.AppsV1Api)
        self.custom_objects = MagicMock(spec=client.CustomObjectsApi)

        self.apps_v1.list_namespaced_stateful_set.side_effect = (
            lambda namespace, label_selector=None: Mock(
                items=_matching(self.stateful_sets, label_selector)
            )
        )
        self.apps_v1.list_namespaced_replica_set.side_effect = (
            lambda namespace, label_selector=None: Mock(
                items=_matching(self.replica_sets, label_selector)
            )
        )
        self.core_v1.list_namespaced_pod.side_effect = (
            lambda namespace, label_selector=None: Mock(
                items=_matching(self.pods, label_selector)
            )
        )
        self.custom_objects.replace_namespaced_custom_object_status.side_effect = (
            lambda **kwargs: kwargs["body"]
        )

    def written_status(self, call_index: int = -1) -> dict:
        """Status body of a replace_namespaced_custom_object_status call."""
        calls = self.custom_objects.replace_namespaced_custom_object_status.call_args_list
        return calls[call_index].kwargs["body"]["status"]


@pytest.fixture
def mock_cluster_connection():
    """Mock cluster connection for testing."""
    mock_conn = MagicMock()
    mock_conn.core_v1 = MagicMock(spec=client.CoreV1Api)
    mock_conn.apps_v1 = MagicMock(spec=client.AppsV1Api)
    mock_conn.custom_objects = MagicMock(spec=client.CustomObjectsApi)
    return mock_conn


@pytest.fixture
def fake_cluster():
    """Cluster connection backed by in-memory workloads and pods."""
    return FakeCluster()


@pytest.fixture
def make_pod():
    """Factory for V1Pod objects."""

    def _make_pod(
        name: str,
        uid: str,
        pod_ip: Optional[str] = None,
        owner_uid: Optional[str] = None,
        owner_kind: str = "StatefulSet",
        labels: Optional[dict[str, str]] = None,
        ready: bool = True,
    ) -> client.V1Pod:
        owner_references = None
        if owner_uid:
            owner_references = [
                client.V1OwnerReference(
                    api_version="apps/v1",
                    kind=owner_kind,
                    name=f"{name}-owner",
                    uid=owner_uid,
                    controller=True,
                )
            ]
        return client.V1Pod(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace="default",
                uid=uid,
                labels=labels if labels is not None else dict(CORE_LABELS),
                owner_references=owner_references,
            ),
            status=client.V1PodStatus(
                phase="Running" if ready else "Pending",
                pod_ip=pod_ip,
                conditions=[
                    client.V1PodCondition(type="Ready", status="True" if ready else "False")
                ],
            ),
        )

    return _make_pod


@pytest.fixture
def make_stateful_set():
    """Factory for V1StatefulSet objects pinned to a revision."""

    def _make_stateful_set(
        name: str, uid: str, replicas: int, revision: str, labels: Optional[dict] = None
    ) -> client.V1StatefulSet:
        all_labels = {**(labels or CORE_LABELS), POD_TEMPLATE_HASH_LABEL_KEY: revision}
        return client.V1StatefulSet(
            metadata=client.V1ObjectMeta(
                name=name, namespace="default", uid=uid, labels=all_labels
            ),
            spec=client.V1StatefulSetSpec(
                replicas=replicas,
                service_name=f"{name}-headless",
                selector=client.V1LabelSelector(match_labels=all_labels),
                template=client.V1PodTemplateSpec(),
            ),
        )

    return _make_stateful_set


@pytest.fixture
def make_replica_set():
    """Factory for V1ReplicaSet objects pinned to a revision."""

    def _make_replica_set(
        name: str, uid: str, replicas: int, revision: str, labels: Optional[dict] = None
    ) -> client.V1ReplicaSet:
        all_labels = {**(labels or REPLICANT_LABELS), POD_TEMPLATE_HASH_LABEL_KEY: revision}
        return client.V1ReplicaSet(
            metadata=client.V1ObjectMeta(
                name=name, namespace="default", uid=uid, labels=all_labels
            ),
            spec=client.V1ReplicaSetSpec(
                replicas=replicas,
                selector=client.V1LabelSelector(match_labels=all_labels),
            ),
        )

    return _make_replica_set


@pytest.fixture
def emqx_resource():
    """Raw EMQX custom object with a single core node and no replicant tier."""
    return {
        "apiVersion": "apps.emqx.io/v2alpha2",
        "kind": "EMQX",
        "metadata": {
            "name": "broker",
            "namespace": "default",
            "uid": "emqx-uid",
            "resourceVersion": "100",
            "labels": dict(INSTANCE_LABELS),
        },
        "spec": {
            "image": "emqx/emqx:5.1",
            "coreTemplate": {
                "metadata": {"labels": dict(CORE_LABELS)},
                "spec": {"replicas": 1},
            },
        },
        "status": {"coreNodesStatus": {"currentRevision": "core-rev-1"}},
    }


@pytest.fixture
def emqx_resource_with_replicant(emqx_resource):
    """Raw EMQX custom object with three core and two replicant nodes."""
    emqx_resource["spec"]["coreTemplate"]["spec"]["replicas"] = 3
    emqx_resource["spec"]["replicantTemplate"] = {
        "metadata": {"labels": dict(REPLICANT_LABELS)},
        "spec": {"replicas": 2},
    }
    emqx_resource["status"]["replicantNodesStatus"] = {"currentRevision": "repl-rev-1"}
    return emqx_resource


@pytest.fixture
def instance(emqx_resource):
    """Parsed single-core instance."""
    return Instance.from_resource(emqx_resource)


@pytest.fixture
def instance_with_replicant(emqx_resource_with_replicant):
    """Parsed instance with a replicant tier."""
    return Instance.from_resource(emqx_resource_with_replicant)


@pytest.fixture
def core_labels():
    """Labels of the core tier."""
    return dict(CORE_LABELS)


@pytest.fixture
def replicant_labels():
    """Labels of the replicant tier."""
    return dict(REPLICANT_LABELS)

"""Periodic status reconciliation for every EMQX instance in a namespace."""

import asyncio
import logging
from typing import Optional

from kubernetes.client.exceptions import ApiException
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .cluster import ClusterConnection
from .config import Settings
from .errors import StatusPersistError
from .events import EventRecorder
from .models import Instance
from .requester import build_requester
from .revisions import RevisionResolver
from .status import StatusUpdater, StatusWriter
from .workloads import WorkloadLister

logger = logging.getLogger(__name__)


def _is_retryable(e: BaseException) -> bool:
    return not (isinstance(e, ApiException) and e.status in (403, 404))


class InstanceStore:
    """Reads EMQX custom objects."""

    def __init__(
        self,
        cluster: ClusterConnection,
        group: str = "apps.emqx.io",
        version: str = "v2alpha2",
        plural: str = "emqxes",
    ):
        """
        Initialize instance store.

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

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def get(self, name: str, namespace: str = "default") -> Optional[Instance]:
        """
        Get an instance.

        Args:
            name: Instance name
            namespace: Kubernetes namespace

        Returns:
            Instance or None if not found
        """
        try:
            obj = self.custom_objects.get_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=namespace,
                plural=self.plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return Instance.from_resource(obj)

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def list(self, namespace: str = "default") -> list[Instance]:
        """
        List instances.

        Args:
            namespace: Kubernetes namespace

        Returns:
            List of Instance objects
        """
        result = self.custom_objects.list_namespaced_custom_object(
            group=self.group,
            version=self.version,
            namespace=namespace,
            plural=self.plural,
        )
        return [Instance.from_resource(obj) for obj in result.get("items", [])]


class StatusReconciliationLoop:
    """
    Runs a status pass for every instance at a fixed interval.

    A pass that fails is logged and retried on the next tick.
    """

    def __init__(
        self,
        cluster: ClusterConnection,
        settings: Settings,
        store: Optional[InstanceStore] = None,
        updater: Optional[StatusUpdater] = None,
    ):
        """
        Initialize reconciliation loop.

        Args:
            cluster: Cluster connection
            settings: Controller settings
            store: Instance store, built from settings when omitted
            updater: Status updater, built from settings when omitted
        """
        self.cluster = cluster
        self.settings = settings
        self.namespace = settings.namespace
        self.reconcile_interval = settings.reconcile_interval_seconds
        self.lister = WorkloadLister(cluster)
        self.resolver = RevisionResolver(self.lister)
        self.store = store or InstanceStore(
            cluster, settings.crd_group, settings.crd_version, settings.crd_plural
        )
        self.updater = updater or StatusUpdater(
            lister=self.lister,
            writer=StatusWriter(
                cluster, settings.crd_group, settings.crd_version, settings.crd_plural
            ),
            recorder=EventRecorder(
                cluster, api_version=f"{settings.crd_group}/{settings.crd_version}"
            ),
        )
        self._running = False
        self._tasks: list[asyncio.Task] = []

    async def reconcile_instance(self, instance: Instance) -> Instance:
        """
        Run one status pass for an instance.

        Args:
            instance: EMQX instance

        Returns:
            Instance carrying the persisted status

        Raises:
            StatusPersistError: If the status write fails
        """
        existing = await asyncio.to_thread(self.resolver.resolve, instance)
        pods = await asyncio.to_thread(
            self.lister.list_pods,
            instance.namespace,
            {**instance.labels, **instance.spec.core_template.labels},
        )
        requester = build_requester(pods.items, self.settings, existing.core.uid)
        if requester is None:
            logger.info(
                f"No ready core pod for {instance.namespace}/{instance.name}, "
                f"skipping node discovery"
            )

        try:
            return await self.updater.reconcile(instance, requester)
        finally:
            if requester is not None:
                await requester.aclose()

    async def reconcile_all(self) -> None:
        """Run a status pass for every instance in the namespace."""
        instances = await asyncio.to_thread(self.store.list, self.namespace)
        logger.debug(f"Reconciling {len(instances)} instances in {self.namespace}")

        for instance in instances:
            try:
                await self.reconcile_instance(instance)
            except StatusPersistError as e:
                logger.error(f"Status pass failed, will retry: {e}")
            except Exception as e:
                logger.error(
                    f"Status pass for {instance.namespace}/{instance.name} failed: {e}",
                    exc_info=True,
                )

    async def _periodic_reconcile(self) -> None:
        """Run reconciliation until stopped."""
        while self._running:
            try:
                await self.reconcile_all()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in periodic reconciliation: {e}", exc_info=True)

            try:
                await asyncio.sleep(self.reconcile_interval)
            except asyncio.CancelledError:
                break

    async def start(self) -> None:
        """Start the reconciliation loop."""
        if self._running:
            logger.warning("Reconciliation loop already running")
            return

        self._running = True
        logger.info(
            f"Starting status reconciliation for namespace {self.namespace} "
            f"every {self.reconcile_interval}s"
        )
        self._tasks.append(asyncio.create_task(self._periodic_reconcile()))

    async def stop(self) -> None:
        """Stop the reconciliation loop."""
        logger.info("Stopping reconciliation loop")
        self._running = False

        for task in self._tasks:
            task.cancel()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

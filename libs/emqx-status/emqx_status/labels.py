"""Label conventions shared with the workload reconciler."""

from typing import Optional

# Pins a StatefulSet/ReplicaSet to one revision of its tier template
POD_TEMPLATE_HASH_LABEL_KEY = "apps.emqx.io/pod-template-hash"


def clone_and_add_label(
    labels: Optional[dict[str, str]], key: str, value: str
) -> dict[str, str]:
    """
    Copy a label set and add one label to the copy.

    Args:
        labels: Source labels (left untouched)
        key: Label key
        value: Label value

    Returns:
        New label dict
    """
    cloned = dict(labels or {})
    cloned[key] = value
    return cloned


def label_selector(labels: Optional[dict[str, str]]) -> Optional[str]:
    """Render a label dict as an equality-based selector string."""
    if not labels:
        return None
    return ",".join([f"{k}={v}" for k, v in labels.items()])

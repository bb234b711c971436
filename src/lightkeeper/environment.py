"""Runtime environment detection."""

import os


def is_kubernetes() -> bool:
    """Return True when the process runs inside a Kubernetes pod."""
    return bool(os.environ.get("KUBERNETES_SERVICE_HOST"))

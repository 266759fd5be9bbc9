"""Fire-and-forget usage reporting to the upstream."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .client import ArtifactoryClient
from .constants import PRODUCT_ID, USAGE_PATH

logger = logging.getLogger(__name__)


class UsageReporter:
    """Posts feature usage on a daemon thread.

    Failures are logged and never reach the caller.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def send(self, client: ArtifactoryClient, feature_id: str) -> Optional[threading.Thread]:
        """Dispatch a usage report for ``feature_id``; returns the worker thread."""
        if not self.enabled:
            return None
        thread = threading.Thread(
            target=self._post,
            args=(client, feature_id),
            name=f"usage-{feature_id}",
            daemon=True,
        )
        thread.start()
        return thread

    def _post(self, client: ArtifactoryClient, feature_id: str) -> None:
        payload = {"productId": PRODUCT_ID, "features": [{"featureId": feature_id}]}
        try:
            resp = client.post_json(USAGE_PATH, payload)
        except Exception as e:
            logger.warning(f"Error sending usage report for {feature_id}: {e}")
            return
        if resp.status_code >= 400:
            logger.warning(
                f"Usage report for {feature_id} returned status {resp.status_code}"
            )

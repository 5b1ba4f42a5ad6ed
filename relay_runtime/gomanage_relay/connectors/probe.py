from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import GOMANAGE_LANDING_PATH, GOMANAGE_PROBE_TIMEOUT
from ..errors import TransientNetworkError
from .gomanage import GomanageClient

log = logging.getLogger("relay.probe")


@dataclass
class ProbeResult:
    reachable: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class HealthProber:
    """Single bounded GET to the upstream landing page. No auth, no retries.

    Any HTTP answer (even 401/500) means the upstream is up.
    """

    def __init__(
        self,
        client: GomanageClient,
        path: str = GOMANAGE_LANDING_PATH,
        timeout: float = GOMANAGE_PROBE_TIMEOUT,
    ):
        self.client = client
        self.path = path
        self.timeout = timeout

    def probe(self) -> ProbeResult:
        try:
            resp = self.client.request("GET", self.path, timeout=self.timeout)
        except TransientNetworkError as e:
            log.warning("upstream unreachable: %s", e)
            return ProbeResult(reachable=False, error=str(e))
        return ProbeResult(reachable=True, status_code=int(resp.status_code))

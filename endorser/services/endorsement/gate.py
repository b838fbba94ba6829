"""
Startup latch that holds back scheduled work until the network has launched.
"""

from typing import Awaitable, Callable

import structlog


logger = structlog.get_logger(__name__)


class StartupGate:
    """
    Polls the launch status until it reports true, then stays open for the
    rest of the process lifetime.
    """

    def __init__(self, fetch_status: Callable[[], Awaitable[bool]]):
        self._fetch_status = fetch_status
        self._confirmed = False

    @property
    def confirmed(self) -> bool:
        return self._confirmed

    async def is_open(self) -> bool:
        if self._confirmed:
            return True
        if await self._fetch_status():
            self._confirmed = True
            logger.info("Network launch confirmed, scheduled endorsement enabled")
            return True
        logger.info("The network has not officially launched yet, please wait for it to start")
        return False

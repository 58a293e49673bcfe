from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from telemetry_dashboard.live_follow import LiveFollowController

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = timedelta(seconds=60)


def check_inactivity(
    last_interaction: Optional[datetime],
    now: datetime,
    is_following: bool,
    threshold: timedelta = DEFAULT_THRESHOLD,
) -> bool:
    """True when a paused chart has been idle for longer than ``threshold``.

    The comparison is strict: idle for exactly ``threshold`` is not enough.
    """
    if is_following or last_interaction is None:
        return False
    return now - last_interaction > threshold


class InactivityMonitor:
    """Returns the controller to live after a period without navigation."""

    def __init__(self, controller: LiveFollowController, threshold: timedelta = DEFAULT_THRESHOLD) -> None:
        self.controller = controller
        self.threshold = threshold

    def check(self, now: datetime) -> bool:
        c = self.controller
        if not check_inactivity(c.last_interaction, now, c.is_following, self.threshold):
            return False
        log.info("No interaction for %s, returning to live", now - c.last_interaction)
        c.return_to_live()
        return True

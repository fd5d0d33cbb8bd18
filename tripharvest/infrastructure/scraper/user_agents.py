"""
User-agent rotation.

Keeps a pool of realistic desktop and mobile user agents and hands one
out per browser context, so consecutive navigations do not share an
identical fingerprint.

Example:
    >>> rotator = UserAgentRotator(strategy="round_robin")
    >>> ua = rotator.next()
    >>> rotator.stats()["total_usage"]
    1
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from tripharvest.utils.logger import get_logger

logger = get_logger(__name__)


DESKTOP_USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    # Chrome on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    # Firefox on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    # Firefox on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
    # Safari on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    # Edge on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
]

MOBILE_USER_AGENTS = [
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) CriOS/120.0.6099.119 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Android 14; Mobile; rv:121.0) Gecko/121.0 Firefox/121.0",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
    "Mozilla/5.0 (iPad; CPU OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1",
]

STRATEGIES = ("round_robin", "random", "weighted", "mobile_ratio")

_MOBILE_MARKERS = ("Mobile", "Android", "iPhone", "iPad", "iPod", "Windows Phone")


def is_mobile(user_agent: str) -> bool:
    """Whether a user agent string belongs to a phone or tablet."""
    return any(marker in user_agent for marker in _MOBILE_MARKERS)


def detect_browser(user_agent: str) -> str:
    if "Edg" in user_agent:
        return "Edge"
    if "Firefox" in user_agent:
        return "Firefox"
    if "Chrome" in user_agent or "CriOS" in user_agent:
        return "Chrome"
    if "Safari" in user_agent:
        return "Safari"
    return "Unknown"


def detect_os(user_agent: str) -> str:
    if "iPhone" in user_agent or "iPad" in user_agent:
        return "iOS"
    if "Android" in user_agent:
        return "Android"
    if "Windows NT" in user_agent:
        return "Windows"
    if "Mac OS X" in user_agent:
        return "macOS"
    if "Linux" in user_agent:
        return "Linux"
    return "Unknown"


@dataclass
class UserAgentInfo:
    """One entry of the pool with its usage bookkeeping."""
    user_agent: str
    mobile: bool
    browser: str
    os: str
    usage_count: int = 0
    last_used: Optional[float] = None

    @classmethod
    def from_string(cls, user_agent: str) -> "UserAgentInfo":
        return cls(
            user_agent=user_agent,
            mobile=is_mobile(user_agent),
            browser=detect_browser(user_agent),
            os=detect_os(user_agent),
        )


class UserAgentRotator:
    """
    Pool of user agents with a selection strategy.

    Strategies:
        round_robin: Cycle through the pool in order.
        random: Uniform random pick.
        weighted: Least-used agents are more likely to be picked.
        mobile_ratio: Pick a mobile agent with probability ``mobile_ratio``,
            otherwise a desktop one (uniformly within each group).

    Attributes:
        strategy: Active selection strategy.
        mobile_ratio: Share of mobile agents for the ``mobile_ratio`` strategy.
        avoid_recent: Skip agents used within ``recent_window`` seconds
            while others are available.
    """

    def __init__(
        self,
        user_agents: Optional[Iterable[str]] = None,
        strategy: str = "random",
        mobile_ratio: float = 0.3,
        avoid_recent: bool = True,
        recent_window: float = 60.0,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rotator.

        Args:
            user_agents: Custom pool. Defaults to the built-in desktop
                pool, plus the mobile pool for the ``mobile_ratio`` strategy.
            strategy: One of ``STRATEGIES``.
            mobile_ratio: Between 0 and 1.
            avoid_recent: Prefer agents not used recently.
            recent_window: Seconds an agent counts as recently used.
            rng: Random generator (injectable for tests).
            clock: Monotonic clock (injectable for tests).
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"Invalid strategy '{strategy}'. Choose from: {list(STRATEGIES)}")
        if not 0.0 <= mobile_ratio <= 1.0:
            raise ValueError("mobile_ratio must be between 0 and 1")

        self.strategy = strategy
        self.mobile_ratio = mobile_ratio
        self.avoid_recent = avoid_recent
        self.recent_window = recent_window
        self._rng = rng or random.Random()
        self._clock = clock
        self._index = 0

        if user_agents:
            agents = list(user_agents)
        elif strategy == "mobile_ratio":
            agents = DESKTOP_USER_AGENTS + MOBILE_USER_AGENTS
        else:
            # Listing selectors and the fixed viewport target desktop markup
            agents = list(DESKTOP_USER_AGENTS)
        self._pool: list[UserAgentInfo] = []
        for ua in agents:
            self.add(ua, log=False)
        if not self._pool:
            raise ValueError("At least one user agent is required")

    def __len__(self) -> int:
        return len(self._pool)

    @property
    def user_agents(self) -> list[str]:
        return [info.user_agent for info in self._pool]

    def next(self, prefer_mobile: Optional[bool] = None) -> str:
        """
        Pick the next user agent.

        Args:
            prefer_mobile: Restrict the pick to mobile (True) or desktop
                (False) agents when any exist.

        Returns:
            User agent string.
        """
        if not self._pool:
            raise ValueError("User agent pool is empty")

        if prefer_mobile is None and self.strategy == "mobile_ratio":
            prefer_mobile = self._rng.random() < self.mobile_ratio

        candidates = self._pool
        if prefer_mobile is not None:
            matching = [info for info in self._pool if info.mobile == prefer_mobile]
            candidates = matching or self._pool

        now = self._clock()
        if self.avoid_recent:
            fresh = [
                info for info in candidates
                if info.last_used is None or now - info.last_used > self.recent_window
            ]
            candidates = fresh or candidates

        if self.strategy == "round_robin":
            chosen = candidates[self._index % len(candidates)]
            self._index += 1
        elif self.strategy == "weighted":
            chosen = self._weighted_pick(candidates)
        else:
            chosen = self._rng.choice(candidates)

        chosen.usage_count += 1
        chosen.last_used = now
        logger.debug(
            f"Selected user agent: {chosen.browser}/{chosen.os} "
            f"(mobile={chosen.mobile}, strategy={self.strategy})"
        )
        return chosen.user_agent

    def _weighted_pick(self, candidates: list[UserAgentInfo]) -> UserAgentInfo:
        most_used = max(info.usage_count for info in candidates)
        weights = [most_used - info.usage_count + 1 for info in candidates]
        return self._rng.choices(candidates, weights=weights, k=1)[0]

    def add(self, user_agent: str, log: bool = True) -> bool:
        """Add an agent to the pool. Returns False if it was already there."""
        user_agent = user_agent.strip()
        if not user_agent or user_agent in self.user_agents:
            return False
        info = UserAgentInfo.from_string(user_agent)
        self._pool.append(info)
        if log:
            logger.info(f"Added user agent: {info.browser}/{info.os} (mobile={info.mobile})")
        return True

    def remove(self, user_agent: str) -> bool:
        """Remove an agent from the pool. Returns False if it was not there."""
        for i, info in enumerate(self._pool):
            if info.user_agent == user_agent:
                del self._pool[i]
                logger.info(f"Removed user agent: {info.browser}/{info.os}")
                return True
        return False

    def stats(self) -> dict:
        """Pool composition and usage counts."""
        by_browser: dict[str, int] = {}
        by_os: dict[str, int] = {}
        for info in self._pool:
            by_browser[info.browser] = by_browser.get(info.browser, 0) + 1
            by_os[info.os] = by_os.get(info.os, 0) + 1
        mobile = sum(1 for info in self._pool if info.mobile)
        return {
            "total": len(self._pool),
            "mobile": mobile,
            "desktop": len(self._pool) - mobile,
            "by_browser": by_browser,
            "by_os": by_os,
            "total_usage": sum(info.usage_count for info in self._pool),
        }

    def reset_stats(self) -> None:
        """Forget usage counts and recent-use timestamps."""
        for info in self._pool:
            info.usage_count = 0
            info.last_used = None
        self._index = 0

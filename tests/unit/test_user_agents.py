"""Unit tests for user agent rotation."""

import random

import pytest

from tripharvest.infrastructure.scraper.user_agents import (
    DESKTOP_USER_AGENTS,
    MOBILE_USER_AGENTS,
    UserAgentRotator,
    detect_browser,
    detect_os,
    is_mobile,
)

CHROME_WIN = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1"
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestDetection:
    """Test user agent classification."""

    def test_mobile(self):
        assert is_mobile(SAFARI_IPHONE)
        assert not is_mobile(CHROME_WIN)

    def test_browser_and_os(self):
        assert detect_browser(CHROME_WIN) == "Chrome"
        assert detect_os(CHROME_WIN) == "Windows"
        assert detect_browser(SAFARI_IPHONE) == "Safari"
        assert detect_os(SAFARI_IPHONE) == "iOS"

    def test_builtin_pools(self):
        assert all(not is_mobile(ua) for ua in DESKTOP_USER_AGENTS)
        assert all(is_mobile(ua) for ua in MOBILE_USER_AGENTS)


class TestUserAgentRotator:
    """Test rotation strategies and bookkeeping."""

    def test_invalid_strategy(self):
        with pytest.raises(ValueError, match="Invalid strategy"):
            UserAgentRotator(strategy="shuffle")

    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError):
            UserAgentRotator(user_agents=["   "])

    @pytest.mark.parametrize("strategy", ["round_robin", "random", "weighted"])
    def test_default_pool_is_desktop(self, strategy):
        """Test only the mobile_ratio strategy brings mobile agents into the pool."""
        rotator = UserAgentRotator(strategy=strategy, rng=random.Random(3))
        assert rotator.user_agents == DESKTOP_USER_AGENTS
        assert all(not is_mobile(rotator.next()) for _ in range(50))

    def test_mobile_ratio_pool(self):
        rotator = UserAgentRotator(strategy="mobile_ratio")
        assert rotator.stats()["mobile"] == len(MOBILE_USER_AGENTS)

    def test_round_robin(self):
        """Test agents are used in order."""
        rotator = UserAgentRotator(["a", "b", "c"], strategy="round_robin", avoid_recent=False)
        assert [rotator.next() for _ in range(4)] == ["a", "b", "c", "a"]

    def test_avoids_recent(self):
        """Test recently used agents are skipped while others are fresh."""
        clock = FakeClock()
        rotator = UserAgentRotator(["a", "b"], strategy="random", clock=clock, rng=random.Random(1))
        first = rotator.next()
        second = rotator.next()
        assert {first, second} == {"a", "b"}

        clock.now = 30.0
        rotator.next()
        clock.now = 120.0
        assert rotator.next() in ("a", "b")
        assert rotator.stats()["total_usage"] == 4

    def test_weighted_prefers_least_used(self):
        """Test weighted selection leans towards less used agents."""
        rotator = UserAgentRotator(["a", "b"], strategy="weighted", avoid_recent=False, rng=random.Random(7))
        for _ in range(20):
            rotator.next()
        counts = {ua: 0 for ua in ("a", "b")}
        for _ in range(200):
            counts[rotator.next()] += 1
        assert abs(counts["a"] - counts["b"]) < 120

    def test_prefer_mobile(self):
        """Test the pick can be restricted to mobile agents."""
        rotator = UserAgentRotator([CHROME_WIN, SAFARI_IPHONE], avoid_recent=False)
        assert rotator.next(prefer_mobile=True) == SAFARI_IPHONE
        assert rotator.next(prefer_mobile=False) == CHROME_WIN

    def test_mobile_ratio_extremes(self):
        """Test mobile_ratio 0 and 1 pick only desktop or only mobile."""
        desktop_only = UserAgentRotator(strategy="mobile_ratio", mobile_ratio=0.0, avoid_recent=False)
        mobile_only = UserAgentRotator(strategy="mobile_ratio", mobile_ratio=1.0, avoid_recent=False)
        assert all(not is_mobile(desktop_only.next()) for _ in range(10))
        assert all(is_mobile(mobile_only.next()) for _ in range(10))

    def test_add_and_remove(self):
        rotator = UserAgentRotator(["a"])
        assert rotator.add("b")
        assert not rotator.add("b")
        assert rotator.remove("a")
        assert not rotator.remove("a")
        assert rotator.user_agents == ["b"]
        assert len(rotator) == 1

    def test_stats(self):
        """Test pool composition and usage counts."""
        rotator = UserAgentRotator([CHROME_WIN, SAFARI_IPHONE], strategy="round_robin", avoid_recent=False)
        rotator.next()
        rotator.next()
        rotator.next()

        stats = rotator.stats()
        assert stats["total"] == 2
        assert stats["mobile"] == 1
        assert stats["desktop"] == 1
        assert stats["by_browser"] == {"Chrome": 1, "Safari": 1}
        assert stats["total_usage"] == 3

        rotator.reset_stats()
        assert rotator.stats()["total_usage"] == 0

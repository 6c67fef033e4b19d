"""
Request admission guardrails.

Every request that will reach the provider must pass two checks first:

1. Daily budget - total spend for the accounting day is below the ceiling
2. Rate limit - the current fixed window still has request quota

Both checks are synchronous so that, on a single event loop, admission
decisions are made in call-issuance order.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Optional

import structlog

from .clock import Clock
from .errors import BudgetExceeded, RateLimitExceeded

logger = structlog.get_logger(__name__)


class BudgetLevel(Enum):
    """Budget consumption levels in order of severity."""
    NONE = auto()      # Comfortably within budget
    WARNING = auto()   # At or above the warning ratio
    CRITICAL = auto()  # At or above the critical ratio
    EXCEEDED = auto()  # Spend reached the daily limit


@dataclass(frozen=True)
class BudgetStatus:
    """Snapshot of the daily budget."""
    spent: float
    limit: float
    remaining: float
    level: BudgetLevel
    day_key: str


@dataclass
class RateWindow:
    """Fixed request-count window.

    ``window_start`` is None until the first request after a reset.
    """
    window_start: Optional[float] = None
    count: int = 0


def day_key_for(timestamp: float) -> str:
    """Accounting day (UTC calendar date) for an epoch timestamp."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date().isoformat()


@dataclass
class BudgetTracker:
    """Accumulated spend for one accounting day.

    The day rolls over when the UTC date of the clock changes; spend from
    the previous day is discarded at that point.
    """
    daily_limit: float
    day_key: str
    daily_spent: float = 0.0
    warning_ratio: float = 0.8
    critical_ratio: float = 0.95

    def roll(self, now: float) -> None:
        """Start a new accounting day if the date has changed."""
        key = day_key_for(now)
        if key != self.day_key:
            if self.daily_spent:
                logger.info(
                    "budget_day_rolled",
                    previous_day=self.day_key,
                    previous_spent=round(self.daily_spent, 6),
                    day=key
                )
            self.day_key = key
            self.daily_spent = 0.0

    def add(self, cost: float) -> None:
        """Add spend for a billed completion."""
        if cost < 0:
            raise ValueError("cost must be >= 0")
        self.daily_spent += cost

    def status(self) -> BudgetStatus:
        """Classify current spend against the limit."""
        ratio = self.daily_spent / self.daily_limit
        if ratio >= 1:
            level = BudgetLevel.EXCEEDED
        elif ratio >= self.critical_ratio:
            level = BudgetLevel.CRITICAL
        elif ratio >= self.warning_ratio:
            level = BudgetLevel.WARNING
        else:
            level = BudgetLevel.NONE
        return BudgetStatus(
            spent=self.daily_spent,
            limit=self.daily_limit,
            remaining=max(self.daily_limit - self.daily_spent, 0.0),
            level=level,
            day_key=self.day_key
        )


class RequestGate:
    """Enforces the rolling request quota and the daily spend ceiling.

    Must approve a request before any network call is attempted. Quota is
    consumed at admission time, so an admitted request that later fails
    still counts against the window.
    """

    def __init__(
        self,
        clock: Clock,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        daily_limit: float = 10.0,
        warning_ratio: float = 0.8,
        critical_ratio: float = 0.95
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be > 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if daily_limit <= 0:
            raise ValueError("daily_limit must be > 0")

        self.clock = clock
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.window = RateWindow()
        self.budget = BudgetTracker(
            daily_limit=daily_limit,
            day_key=day_key_for(clock.now()),
            warning_ratio=warning_ratio,
            critical_ratio=critical_ratio
        )

    def check_budget(self) -> BudgetStatus:
        """Fail if today's spend has reached the daily limit.

        Returns:
            Budget status at the time of the check

        Raises:
            BudgetExceeded: If daily_spent >= daily_limit
        """
        status = self.budget_status()
        if status.level == BudgetLevel.EXCEEDED:
            logger.warning(
                "budget_exceeded",
                spent=round(status.spent, 6),
                limit=status.limit
            )
            raise BudgetExceeded()
        if status.level in (BudgetLevel.WARNING, BudgetLevel.CRITICAL):
            logger.warning(
                "budget_warning",
                level=status.level.name,
                spent=round(status.spent, 6),
                limit=status.limit
            )
        return status

    def check_rate_limit(self) -> None:
        """Admit a request into the current window or fail.

        The window resets before evaluation once it is at least
        ``window_seconds`` old.

        Raises:
            RateLimitExceeded: If the window already holds max_requests
        """
        now = self.clock.now()
        window = self.window
        if window.window_start is None or now - window.window_start >= self.window_seconds:
            window.window_start = now
            window.count = 0

        if window.count >= self.max_requests:
            logger.warning(
                "rate_limited",
                count=window.count,
                max_requests=self.max_requests,
                retry_in=round(window.window_start + self.window_seconds - now, 3)
            )
            raise RateLimitExceeded()
        window.count += 1

    def record_spend(self, cost: float) -> None:
        """Add billed spend to today's total."""
        self.budget.roll(self.clock.now())
        self.budget.add(cost)

    def budget_status(self) -> BudgetStatus:
        self.budget.roll(self.clock.now())
        return self.budget.status()

    def reset(self) -> None:
        """Clear the rate window and today's spend."""
        self.window = RateWindow()
        self.budget.day_key = day_key_for(self.clock.now())
        self.budget.daily_spent = 0.0

"""Period identifiers for artifact reuse windows.

Daily artifacts are keyed by the calendar date in a single reference timezone
shared by every instance, so two requests near midnight agree on "today"
regardless of which host served them or what offset the client sent.
"""

import re
import uuid
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from app.domain.entitlements import PeriodPolicy

REQUEST_PERIOD_PREFIX = "req-"

# Tokens end up inside store keys joined by ":", so the separator must never appear
REQUEST_TOKEN_PATTERN = r"^[A-Za-z0-9_-]+$"
_REQUEST_TOKEN_RE = re.compile(REQUEST_TOKEN_PATTERN)


class PeriodClock:
    """Computes period ids against a canonical reference timezone."""

    def __init__(self, timezone: str = "UTC"):
        self.tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(UTC)

    def daily_period_id(self, now: datetime | None = None) -> str:
        """Return the YYYY-MM-DD date of ``now`` in the reference timezone.

        Naive datetimes are treated as UTC.
        """
        now = now or self.now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now.astimezone(self.tz).date().isoformat()

    def period_id(
        self,
        policy: PeriodPolicy,
        now: datetime | None = None,
        request_token: str | None = None,
    ) -> str:
        """Period id for an artifact under ``policy``.

        Per-request artifacts use the caller's idempotency token when given, so a
        double-submitted request lands on the same key; otherwise a fresh token.

        Raises:
            ValueError: If the token contains characters outside [A-Za-z0-9_-]
        """
        if policy == PeriodPolicy.DAILY:
            return self.daily_period_id(now)

        token = request_token.strip() if request_token else ""
        if not token:
            token = uuid.uuid4().hex
        elif not _REQUEST_TOKEN_RE.match(token):
            raise ValueError(f"Invalid request token {token!r}: only letters, digits, '_' and '-' are allowed")
        return f"{REQUEST_PERIOD_PREFIX}{token}"

    def period_end(self, period_id: str) -> datetime | None:
        """UTC instant at which a daily period ends; None for per-request ids."""
        if period_id.startswith(REQUEST_PERIOD_PREFIX):
            return None
        day = datetime.fromisoformat(period_id).date() + timedelta(days=1)
        return datetime.combine(day, datetime.min.time(), tzinfo=self.tz).astimezone(UTC)

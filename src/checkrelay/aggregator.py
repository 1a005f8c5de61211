"""
Check Aggregator

Resolves a verify request into a single verdict: acquire the check set
(cache first, registry on miss), select the checks the matcher wants,
classify each against the severity threshold, and fold the per-status
counts into one result and HTTP status code.
"""

import logging
from typing import Dict, Optional, Tuple

from .caching import Cache, NoOpCache
from .checks import (
    FOUR_LEVEL,
    AggregateResult,
    CheckMatcher,
    CheckRecord,
    CheckSet,
    CheckStatus,
    HealthSeverity,
    ResultStatus,
    SeverityScale,
)
from .client import RegistryClient
from .config import StatusCodes
from .errors import (
    BadRequestError,
    RegistryUnavailableError,
    UnprocessableResponseError,
    UnsupportedStatusError,
)

logger = logging.getLogger(__name__)


def new_status_counts() -> Dict[CheckStatus, int]:
    """Counts with every classification present, all zero."""
    return {CheckStatus.PASSING: 0, CheckStatus.WARNING: 0, CheckStatus.FAILING: 0}


def aggregate_counts(
    counts: Dict[CheckStatus, int],
    total: int,
    matched: int,
) -> ResultStatus:
    """
    Fold status counts into an overall verdict.

    Rules are ordered; the first that applies wins. A set of checks that
    only warns, with nothing passing, is reported as Failed.
    """
    if counts[CheckStatus.FAILING] > 0:
        return ResultStatus.FAILED
    if counts[CheckStatus.PASSING] == 0 and counts[CheckStatus.WARNING] > 0:
        return ResultStatus.FAILED
    if counts[CheckStatus.WARNING] > 0:
        return ResultStatus.WARNING
    if total == 0 or matched == 0:
        return ResultStatus.NO_CHECKS
    return ResultStatus.OK


class CheckAggregator:
    """Turns registry check sets into verify verdicts."""

    def __init__(
        self,
        registry: RegistryClient,
        cache: Optional[Cache] = None,
        status_codes: Optional[StatusCodes] = None,
        scale: SeverityScale = FOUR_LEVEL,
    ):
        self.registry = registry
        self.cache = cache if cache is not None else NoOpCache()
        self.status_codes = status_codes or StatusCodes()
        self.scale = scale

    def parse_threshold(self, raw: Optional[str], default: str = "passing") -> HealthSeverity:
        """
        Parse the caller's threshold parameter.

        Raises:
            BadRequestError: the value is not in the severity vocabulary
        """
        value = default if raw is None else raw
        threshold = self.scale.parse(value)
        if threshold is None:
            raise BadRequestError(f"Unsupported status: {value}")
        return threshold

    def bad_request(self, error: BadRequestError) -> Tuple[int, AggregateResult]:
        """Verdict for a request rejected before any registry work."""
        return self.status_codes.bad_request, AggregateResult(
            status=ResultStatus.FAILED, detail=str(error)
        )

    async def get_checks(self, url: str) -> CheckSet:
        """Return the check set for url, fetching and caching on a miss."""
        cached = self.cache.get(url)
        if cached is not None:
            logger.debug("Using cached checks", extra={"url": url})
            return cached

        checks = await self.registry.fetch(url)
        self.cache.set(url, checks)
        return checks

    async def check_registry(self, url: str) -> Tuple[int, AggregateResult]:
        """Verdict for the relay's own health: Ok whenever the registry answers."""
        try:
            await self.get_checks(url)
        except (RegistryUnavailableError, UnprocessableResponseError) as e:
            return self._registry_failure(url, e)
        return self.status_codes.success, AggregateResult(status=ResultStatus.OK)

    async def resolve(
        self,
        url: str,
        matcher: CheckMatcher,
        threshold: HealthSeverity = HealthSeverity.PASSING,
        verbose: bool = False,
    ) -> Tuple[int, AggregateResult]:
        """
        Resolve the checks at url selected by matcher into a verdict.

        Args:
            url: Registry check listing URL (also the cache key)
            matcher: Which checks take part in the verdict
            threshold: Worst severity still treated as passing
            verbose: Include passing checks in the payload

        Returns:
            (HTTP status code, result payload)
        """
        try:
            all_checks = await self.get_checks(url)
        except (RegistryUnavailableError, UnprocessableResponseError) as e:
            return self._registry_failure(url, e)

        total = 0
        matched = 0
        counts = new_status_counts()
        notable: Dict[str, CheckRecord] = {}

        for check_id, check in all_checks.items():
            total += 1
            if not matcher.matches(check):
                continue
            matched += 1
            try:
                status = check.match_status(threshold, self.scale)
            except UnsupportedStatusError as e:
                logger.warning(
                    "Check has unsupported status",
                    extra={"url": url, "check_id": check_id, "status": e.status},
                )
                return self.status_codes.unprocessable, AggregateResult(
                    status=ResultStatus.FAILED, detail=str(e)
                )
            counts[status] += 1
            if status != CheckStatus.PASSING or verbose:
                notable[check_id] = check

        overall = aggregate_counts(counts, total, matched)
        codes = self.status_codes

        if overall == ResultStatus.NO_CHECKS:
            return codes.no_checks, AggregateResult(
                status=overall, detail=matcher.no_checks_message
            )
        if overall == ResultStatus.OK:
            return codes.success, AggregateResult(status=overall, counts=counts, checks=notable)

        if overall == ResultStatus.WARNING:
            code = codes.partial_success
        elif counts[CheckStatus.FAILING] > 0:
            code = codes.error
        else:
            code = codes.warning
        return code, AggregateResult(status=overall, counts=counts, checks=notable)

    def _registry_failure(self, url: str, error: Exception) -> Tuple[int, AggregateResult]:
        if isinstance(error, RegistryUnavailableError):
            code = self.status_codes.registry_unavailable
        else:
            code = self.status_codes.unprocessable
            logger.warning(
                "Registry response could not be decoded",
                extra={"url": url, "error": str(error)},
            )
        return code, AggregateResult(status=ResultStatus.FAILED, detail=str(error))

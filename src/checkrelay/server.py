"""
Check Relay API Server

FastAPI application exposing registry checks as probe-friendly verify
endpoints. Every route answers GET and HEAD, with or without a trailing
slash.

Query parameters:
- status:  worst registry severity still treated as passing
- verbose: include passing checks in the payload
- pretty:  indent the JSON response
"""

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from . import __version__
from .aggregator import CheckAggregator
from .caching import Cache, create_cache
from .checks import (
    AggregateResult,
    CheckMatcher,
    MatchAll,
    MatchCheckId,
    MatchCheckName,
    MatchServiceId,
    MatchServiceName,
    get_severity_scale,
)
from .client import RegistryClient
from .config import ServerConfig
from .errors import BadRequestError
from .logging_config import generate_request_id, log_request, set_request_id
from .metrics import HTTP_REQUESTS_IN_PROGRESS, metrics_endpoint, record_http_request, route_template
from .version import get_info

logger = logging.getLogger(__name__)

STATUS_QUERY_KEY = "status"
VERBOSE_QUERY_KEY = "verbose"
PRETTY_QUERY_KEY = "pretty"


class PrettyJSONResponse(JSONResponse):
    """JSON response indented with four spaces."""

    def render(self, content: Any) -> bytes:
        return json.dumps(content, ensure_ascii=False, indent=4).encode("utf-8")


def render(request: Request, status_code: int, content: Any) -> Response:
    """Render content as JSON, indented when ?pretty is present."""
    if PRETTY_QUERY_KEY in request.query_params:
        return PrettyJSONResponse(content, status_code=status_code)
    return JSONResponse(content, status_code=status_code)


def render_result(request: Request, verdict: Tuple[int, AggregateResult]) -> Response:
    status_code, result = verdict
    return render(request, status_code, result.to_response())


def _path_value(value: str) -> str:
    """Path parameter with at most one trailing slash removed."""
    if value.endswith("/"):
        return value[:-1]
    return value


def _metric_url(request: Request) -> str:
    if "route" in request.scope:
        return route_template(request.scope)
    for route in request.app.router.routes:
        match, child_scope = route.matches(request.scope)
        if match == Match.FULL:
            return route_template(child_scope)
    return route_template({})


def _request_size(request: Request) -> int:
    """Approximate request size in bytes, counting the request line and headers."""
    size = len(str(request.url)) + len(request.method)
    size += len("HTTP/" + request.scope.get("http_version", "1.1"))
    size += sum(len(name) + len(value) for name, value in request.headers.items())
    size += int(request.headers.get("content-length", 0) or 0)
    return size


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Tracks request metrics and logs every request with a request ID."""

    async def dispatch(self, request: Request, call_next):
        method = request.method
        request_id = generate_request_id()
        set_request_id(request_id)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method).inc()
        request_start = time.perf_counter()
        status_code = 500
        response_size = 0
        unhandled = False

        try:
            response = await call_next(request)
            status_code = response.status_code
            response_size = int(response.headers.get("content-length", 0) or 0)
            response.headers["X-Request-ID"] = request_id
        except Exception:
            unhandled = True
            raise
        finally:
            duration = time.perf_counter() - request_start
            record_http_request(
                method, _metric_url(request), status_code, duration,
                request_size=_request_size(request), response_size=response_size,
            )
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method).dec()
            if request.url.path != "/metrics":
                log_request(
                    logger, method, request.url.path, status_code, duration * 1000,
                    unhandled=unhandled,
                )

        return response


def create_app(
    config: Optional[ServerConfig] = None,
    registry: Optional[RegistryClient] = None,
    cache: Optional[Cache] = None,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        config: Relay configuration (defaults plus environment when omitted)
        registry: Registry client, created from config.client when omitted
        cache: Check set cache, created from config.cache when omitted
    """
    config = config or ServerConfig()
    registry = registry or RegistryClient(config.client)
    aggregator = CheckAggregator(
        registry=registry,
        cache=cache if cache is not None else create_cache(config.cache),
        status_codes=config.status_codes,
        scale=get_severity_scale(config.severity_scale),
    )
    # Fail at startup rather than on every request
    aggregator.parse_threshold(config.default_threshold)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Check relay starting", extra={
            "version": __version__,
            "registry_url": config.registry_checks_url,
            "cache_duration": config.cache.registry_cache_duration,
        })
        yield
        logger.info("Check relay shutting down")
        await registry.close()

    app = FastAPI(
        title="Check Relay",
        description="Aggregated registry health checks for load balancer and uptime probes",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.aggregator = aggregator
    app.add_middleware(RequestMetricsMiddleware)

    registry_url = config.registry_checks_url

    async def about(request: Request):
        """Version and build information."""
        return render(request, config.status_codes.success, get_info())

    async def health(request: Request):
        """Ok as long as the registry answers with a decodable check listing."""
        return render_result(request, await aggregator.check_registry(registry_url))

    async def verify(request: Request, matcher: CheckMatcher) -> Response:
        try:
            threshold = aggregator.parse_threshold(
                request.query_params.get(STATUS_QUERY_KEY), config.default_threshold
            )
        except BadRequestError as e:
            return render_result(request, aggregator.bad_request(e))

        verbose = VERBOSE_QUERY_KEY in request.query_params
        verdict = await aggregator.resolve(registry_url, matcher, threshold, verbose)
        return render_result(request, verdict)

    async def verify_all_checks(request: Request):
        """Verdict over every check known to the registry agent."""
        return await verify(request, MatchAll())

    async def verify_check_id(request: Request, check: str):
        """Verdict over the check with the given CheckID."""
        return await verify(request, MatchCheckId(_path_value(check)))

    async def verify_check_name(request: Request, check: str):
        """Verdict over the checks with the given name."""
        return await verify(request, MatchCheckName(_path_value(check)))

    async def verify_service_id(request: Request, service: str):
        """Verdict over the checks of the service with the given ServiceID."""
        return await verify(request, MatchServiceId(_path_value(service)))

    async def verify_service_name(request: Request, service: str):
        """Verdict over the checks of services with the given name."""
        return await verify(request, MatchServiceName(_path_value(service)))

    routes: Tuple[Tuple[str, Callable[..., Awaitable[Response]]], ...] = (
        ("/about", about),
        ("/health", health),
        ("/verify/checks", verify_all_checks),
    )
    for path, endpoint in routes:
        for variant in (path, path + "/"):
            app.add_api_route(
                variant,
                endpoint,
                methods=["GET", "HEAD"],
                include_in_schema=variant == path,
            )

    # Identifiers may contain an encoded slash (web%2F1), which arrives decoded
    # and is only matched by the path converter
    parameterized: Tuple[Tuple[str, Callable[..., Awaitable[Response]]], ...] = (
        ("/verify/checks/id/{check:path}", verify_check_id),
        ("/verify/checks/name/{check:path}", verify_check_name),
        ("/verify/service/id/{service:path}", verify_service_id),
        ("/verify/service/name/{service:path}", verify_service_name),
    )
    for path, endpoint in parameterized:
        app.add_api_route(path, endpoint, methods=["GET", "HEAD"])

    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)

    return app


# Run with: uvicorn checkrelay.server:create_app --factory --port 8080

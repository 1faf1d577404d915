"""fieldguard: FastAPI host serving a rate limited GraphQL schema.

    from fieldguard.main import create_app
    app = create_app(schema, root_value=root)

Each request's client IP is its rate limit identity. What happens when the
counter store is down is chosen explicitly via STORE_FAILURE_POLICY:
"closed" rejects the request with 503, "open" runs it unlimited.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from graphql import GraphQLSchema

from fieldguard.analysis.analyzer import RateLimitAnalyzer
from fieldguard.analysis.registry import RateLimitRegistry
from fieldguard.config.settings import get_settings
from fieldguard.errors import StoreUnavailableError
from fieldguard.logging.audit import audit, request_context, setup_logging
from fieldguard.query.execution import execute_query
from fieldguard.store.base import WindowCounterStore
from fieldguard.store.factory import close_window_store, get_window_store

VERSION = "0.1.0"

STORE_UNAVAILABLE_MESSAGE = "Rate limit store unavailable"


def build_registry(schema: GraphQLSchema) -> RateLimitRegistry:
    """Limits from schema extensions, overridden by RATE_LIMITS_PATH if set."""
    registry = RateLimitRegistry.from_schema(schema)
    path = get_settings().rate_limits_path
    if path:
        registry.merge(RateLimitRegistry.from_json(path))
    return registry


def _bad_request(message: str, headers: dict) -> JSONResponse:
    return JSONResponse(status_code=400, content={"errors": [{"message": message}]}, headers=headers)


def _body_error(body: Any) -> str | None:
    if not isinstance(body, dict) or not isinstance(body.get("query"), str):
        return "Request body must be JSON with a 'query' string"
    if body.get("variables") is not None and not isinstance(body["variables"], dict):
        return "'variables' must be a JSON object"
    if body.get("operationName") is not None and not isinstance(body["operationName"], str):
        return "'operationName' must be a string"
    return None


def create_app(
    schema: GraphQLSchema,
    *,
    registry: RateLimitRegistry | None = None,
    store: WindowCounterStore | None = None,
    root_value: Any = None,
) -> FastAPI:
    """Build the app; raises ConfigurationError for limits the store cannot hold."""
    owns_store = store is None
    if owns_store:
        # Resolved once here so request threads never race to build it
        store = get_window_store()
    analyzer = RateLimitAnalyzer(
        registry if registry is not None else build_registry(schema),
        store=store,
        query_type_name=schema.query_type.name if schema.query_type else "Query",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown lifecycle hooks."""
        setup_logging()
        audit("fieldguard started", backend=type(store).__name__, ttl_seconds=store.ttl_seconds)
        yield
        if owns_store:
            close_window_store()
        audit("fieldguard stopped")

    app = FastAPI(
        title="fieldguard",
        description="GraphQL endpoint with per-field rate limits",
        version=VERSION,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": VERSION}

    @app.post("/graphql")
    async def graphql_endpoint(request: Request):
        with request_context() as rid:
            headers = {"X-Request-Id": rid}

            try:
                body = await request.json()
            except ValueError:
                body = None
            error = _body_error(body)
            if error is not None:
                return _bad_request(error, headers)

            client_ip = request.client.host if request.client else "unknown"
            context = {"ip": client_ip, "request": request}
            kwargs = {
                "context": context,
                "root_value": root_value,
                "variable_values": body.get("variables"),
                "operation_name": body.get("operationName"),
            }

            try:
                result = await asyncio.to_thread(
                    execute_query, schema, body["query"], analyzers=[analyzer], **kwargs
                )
            except StoreUnavailableError as exc:
                if not get_settings().fail_open:
                    audit(
                        "Rate limit store unavailable, request rejected",
                        logging.ERROR,
                        client_ip=client_ip,
                        error=str(exc),
                    )
                    return JSONResponse(
                        status_code=503,
                        content={"errors": [{"message": STORE_UNAVAILABLE_MESSAGE}]},
                        headers=headers,
                    )

                audit(
                    "Rate limit store unavailable, executing without limits",
                    logging.WARNING,
                    client_ip=client_ip,
                    error=str(exc),
                )
                result = await asyncio.to_thread(execute_query, schema, body["query"], **kwargs)

            if "errors" in result and "data" not in result:
                audit(
                    "Request rejected",
                    client_ip=client_ip,
                    errors=[e.get("message") for e in result["errors"]],
                )
            else:
                audit("Request executed", client_ip=client_ip)

            return JSONResponse(content=result, headers=headers)

    return app

"""Rate limiting middleware — Redis fixed-window counter per IP.

Learn: Each IP gets a counter key like "checkin:rl:{ip}:{bucket}:{minute}".
GraphQL requests share one bucket; mutations whose top-level fields
include login or register get a stricter one to slow down credential
stuffing. The WebSocket endpoint isn't HTTP-routed through here and
isn't limited.

Gracefully skips rate limiting if Redis is unavailable (e.g., in tests).
"""

import json
import time

import structlog
from graphql import FieldNode, GraphQLError, OperationDefinitionNode, OperationType, parse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from checkin.db.redis import get_redis

logger = structlog.get_logger()

AUTH_MUTATIONS = frozenset({"login", "register"})


def mutation_fields(body: bytes) -> frozenset[str]:
    """Top-level field names of the mutation a GraphQL POST body would run.

    Anything that isn't a parseable GraphQL payload yields an empty
    set; the GraphQL endpoint rejects it on its own.
    """
    try:
        payload = json.loads(body)
        document = parse(payload["query"])
    except (ValueError, KeyError, TypeError, GraphQLError):
        return frozenset()

    operation_name = payload.get("operationName")
    fields = set()
    for definition in document.definitions:
        if not isinstance(definition, OperationDefinitionNode):
            continue
        if definition.operation != OperationType.MUTATION:
            continue
        if operation_name and (
            definition.name is None or definition.name.value != operation_name
        ):
            continue
        for selection in definition.selection_set.selections:
            if isinstance(selection, FieldNode):
                fields.add(selection.name.value)
    return frozenset(fields)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        is_auth = await self._is_auth_request(request)
        rpm = self.auth_rpm if is_auth else self.default_rpm

        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time() // 60)
        bucket = "auth" if is_auth else "api"
        key = f"checkin:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)  # 2-min TTL for safety
        except Exception as e:
            # Redis error — don't block the request
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit.exceeded", client_ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests, please try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response

    async def _is_auth_request(self, request: Request) -> bool:
        if request.method != "POST" or not request.url.path.startswith("/graphql"):
            return False
        return not AUTH_MUTATIONS.isdisjoint(mutation_fields(await request.body()))

"""GraphQL schema — queries and mutations.

Learn: Resolvers are thin. They check auth, call the service layer, and
turn domain errors (CheckinError subclasses) into GraphQL errors with
an `extensions.code` the app can switch on:

    UNAUTHENTICATED, NOT_FOUND, ALREADY_ATTENDING, NOT_ATTENDING,
    INVALID_INPUT, USER_EXISTS, INVALID_CREDENTIALS

joinEvent / leaveEvent commit first and only then hand the fresh
attendee count to the MutationBridge. If the write fails, nothing is
broadcast; if the broadcast fails, the mutation still succeeds.
"""

from datetime import datetime, timezone
from typing import Optional

import strawberry
import structlog
from graphql import GraphQLError
from sqlalchemy.exc import SQLAlchemyError
from strawberry.extensions import MaskErrors
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from checkin.config import settings
from checkin.db.models import Event, User
from checkin.errors import CheckinError, InvalidInput
from checkin.gql.context import RequestContext, get_context
from checkin.gql.types import (
    AuthPayload,
    CreateEventInput,
    EventType,
    LoginInput,
    RegisterInput,
    UserType,
)
from checkin.services.account_service import AccountService

logger = structlog.get_logger()


def _error(message: str, code: str) -> GraphQLError:
    return GraphQLError(message, extensions={"code": code})


def _from_domain(error: CheckinError) -> GraphQLError:
    return _error(str(error), error.code)


async def _require_user(info: Info) -> User:
    context: RequestContext = info.context
    user = await context.current_user()
    if user is None:
        raise _error("Authentication required", "UNAUTHENTICATED")
    return user


async def _committed_attendee_count(context: RequestContext, event: Event) -> int:
    """Attendee count after a committed attendance write.

    The write already succeeded, so a failed count read falls back to the
    attendee list loaded right after the commit instead of failing the
    mutation.
    """
    try:
        return await context.store.count_attendees(event.id)
    except SQLAlchemyError as e:
        logger.warning(
            "graphql.attendee_count_failed", event_id=event.id, error=str(e)
        )
        return len(event.attendees)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ─── Queries ─────────────────────────────────────────────


@strawberry.type
class Query:
    @strawberry.field
    def health(self) -> str:
        return "Server is running!"

    @strawberry.field
    async def me(self, info: Info) -> Optional[UserType]:
        user = await _require_user(info)
        return UserType.from_model(user)

    @strawberry.field
    async def events(self, info: Info) -> list[EventType]:
        events = await info.context.store.list_events()
        return [EventType.from_model(e) for e in events]

    @strawberry.field
    async def event(self, info: Info, id: strawberry.ID) -> Optional[EventType]:
        event = await info.context.store.find_event(str(id))
        if event is None:
            raise _error("Event not found", "NOT_FOUND")
        return EventType.from_model(event)

    @strawberry.field
    async def my_events(self, info: Info) -> list[EventType]:
        user = await _require_user(info)
        events = await info.context.store.list_events_for_user(user.id)
        return [EventType.from_model(e) for e in events]


# ─── Mutations ───────────────────────────────────────────


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def register(self, info: Info, input: RegisterInput) -> AuthPayload:
        accounts = AccountService(info.context.store.db)
        try:
            token, user = await accounts.register(
                name=input.name, email=input.email, password=input.password
            )
        except CheckinError as e:
            raise _from_domain(e)
        logger.info("account.registered", user_id=user.id)
        return AuthPayload(token=token, user=UserType.from_model(user))

    @strawberry.mutation
    async def login(self, info: Info, input: LoginInput) -> AuthPayload:
        accounts = AccountService(info.context.store.db)
        try:
            token, user = await accounts.login(email=input.email, password=input.password)
        except CheckinError as e:
            raise _from_domain(e)
        return AuthPayload(token=token, user=UserType.from_model(user))

    @strawberry.mutation
    async def create_event(self, info: Info, input: CreateEventInput) -> EventType:
        await _require_user(info)

        start_time = _as_utc(input.start_time)
        end_time = _as_utc(input.end_time) if input.end_time else None
        try:
            if start_time < datetime.now(timezone.utc):
                raise InvalidInput("Event start time cannot be in the past")
            if end_time and end_time <= start_time:
                raise InvalidInput("Event end time must be after start time")
        except InvalidInput as e:
            raise _from_domain(e)

        event = await info.context.store.create_event(
            name=input.name,
            description=input.description,
            location=input.location,
            start_time=start_time,
            end_time=end_time,
        )
        logger.info("event.created", event_id=event.id)
        return EventType.from_model(event)

    @strawberry.mutation
    async def join_event(self, info: Info, event_id: strawberry.ID) -> EventType:
        user = await _require_user(info)
        context: RequestContext = info.context
        try:
            event = await context.store.add_attendee(str(event_id), user.id)
        except CheckinError as e:
            raise _from_domain(e)

        attendee_count = await _committed_attendee_count(context, event)
        await context.bridge.publish(event.id, user.id, attendee_count, "joined")
        return EventType.from_model(event)

    @strawberry.mutation
    async def leave_event(self, info: Info, event_id: strawberry.ID) -> EventType:
        user = await _require_user(info)
        context: RequestContext = info.context
        try:
            event = await context.store.remove_attendee(str(event_id), user.id)
        except CheckinError as e:
            raise _from_domain(e)

        attendee_count = await _committed_attendee_count(context, event)
        await context.bridge.publish(event.id, user.id, attendee_count, "left")
        return EventType.from_model(event)


# ─── Schema + router ─────────────────────────────────────


class CheckinSchema(strawberry.Schema):
    """Schema that reports resolver errors through structlog."""

    def process_errors(self, errors, execution_context=None) -> None:
        for error in errors:
            logger.warning(
                "graphql.error",
                message=error.message,
                path=error.path,
                code=(error.extensions or {}).get("code"),
            )


def _is_internal_error(error: GraphQLError) -> bool:
    """Unexpected exceptions — not GraphQL errors raised on purpose."""
    original = error.original_error
    return original is not None and not isinstance(original, GraphQLError)


def build_schema(production: bool = False) -> strawberry.Schema:
    extensions = []
    if production:
        # Don't leak internals (SQL errors etc.) to clients in production
        extensions.append(MaskErrors(should_mask_error=_is_internal_error))
    return CheckinSchema(query=Query, mutation=Mutation, extensions=extensions)


def build_router() -> GraphQLRouter:
    production = settings.environment == "production"
    return GraphQLRouter(
        build_schema(production),
        path="/graphql",
        context_getter=get_context,
        graphql_ide=None if production else "graphiql",
    )

"""GraphQL request context.

Learn: Resolvers get exactly three things, passed explicitly:
- identity: who is calling (None = anonymous browsing)
- store: the EventService bound to this request's DB session
- bridge: how committed attendance changes reach live rooms

Resolvers never see the presence registry itself.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.fastapi import BaseContext

from checkin.auth.dependencies import get_identity_optional
from checkin.auth.verifier import Identity
from checkin.db.engine import get_db
from checkin.db.models import User
from checkin.realtime.bridge import MutationBridge
from checkin.services.event_service import EventService


class RequestContext(BaseContext):
    def __init__(
        self,
        identity: Optional[Identity],
        store: EventService,
        bridge: MutationBridge,
    ):
        super().__init__()
        self.identity = identity
        self.store = store
        self.bridge = bridge
        self._user: Optional[User] = None

    async def current_user(self) -> Optional[User]:
        """The caller's User row, or None if anonymous or unknown."""
        if self.identity is None:
            return None
        if self._user is None:
            self._user = await self.store.find_user(self.identity.user_id)
        return self._user


def get_bridge(request: Request) -> MutationBridge:
    return request.app.state.bridge


async def get_context(
    db: AsyncSession = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity_optional),
    bridge: MutationBridge = Depends(get_bridge),
) -> RequestContext:
    return RequestContext(identity=identity, store=EventService(db), bridge=bridge)

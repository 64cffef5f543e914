"""Review session routes.

A session lives in the registry between requests. Each request moves its
current card one step: reveal, grade, refresh or skip. A session that has
finished or been abandoned is dropped from the registry after its final view
is returned.
"""

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException

from recallkit.core.clock import Clock
from recallkit.core.session import ReviewSession, SessionStatus
from recallkit.core.storage import CardStore
from recallkit.web.dependencies import (
    get_clock,
    get_owner,
    get_registry,
    get_settings,
    get_store,
)
from recallkit.web.schemas import GradeRequest, SessionCreate, SessionView
from recallkit.web.sessions import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()

_OVER = (SessionStatus.FINISHED, SessionStatus.ABANDONED)


def _operate(
    registry: SessionRegistry,
    owner: str,
    session_id: str,
    action: Callable[[ReviewSession], object] | None = None,
) -> SessionView:
    """Run ``action`` on a held session and describe the result."""
    with registry.hold(owner, session_id) as session:
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
        if action is not None:
            action(session)
        view = SessionView.build(session_id, session)
    if view.status in _OVER:
        registry.discard(session_id)
    return view


@router.post("/sessions", status_code=201, response_model=SessionView)
def start_session(
    body: SessionCreate | None = None,
    owner: str = Depends(get_owner),
    store: CardStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    registry: SessionRegistry = Depends(get_registry),
):
    """Queue the owner's due cards and present the first one."""
    body = body or SessionCreate()
    session = ReviewSession(
        store,
        owner,
        clock=clock,
        limit=body.limit or get_settings().session_limit,
        path_id=body.path_id,
    )
    session.start()
    session_id = registry.add(session)
    logger.info("Started session %s for %s with %d card(s)", session_id, owner, session.remaining)
    if session.status in _OVER:
        registry.discard(session_id)
    return SessionView.build(session_id, session)


@router.get("/sessions/{session_id}", response_model=SessionView)
def get_session(
    session_id: str,
    owner: str = Depends(get_owner),
    registry: SessionRegistry = Depends(get_registry),
):
    """Current state of a session."""
    return _operate(registry, owner, session_id)


@router.post("/sessions/{session_id}/reveal", response_model=SessionView)
def reveal(
    session_id: str,
    owner: str = Depends(get_owner),
    registry: SessionRegistry = Depends(get_registry),
):
    """Show the back of the current card."""
    return _operate(registry, owner, session_id, lambda s: s.reveal())


@router.post("/sessions/{session_id}/grade", response_model=SessionView)
def grade(
    session_id: str,
    body: GradeRequest,
    owner: str = Depends(get_owner),
    registry: SessionRegistry = Depends(get_registry),
):
    """Grade the revealed card and present the next one."""
    return _operate(registry, owner, session_id, lambda s: s.grade_current(body.success))


@router.post("/sessions/{session_id}/refresh", response_model=SessionView)
def refresh(
    session_id: str,
    owner: str = Depends(get_owner),
    registry: SessionRegistry = Depends(get_registry),
):
    """Re-read the current card after a version conflict."""
    return _operate(registry, owner, session_id, lambda s: s.refresh_current())


@router.post("/sessions/{session_id}/skip", response_model=SessionView)
def skip(
    session_id: str,
    owner: str = Depends(get_owner),
    registry: SessionRegistry = Depends(get_registry),
):
    """Move past the current card without grading it."""
    return _operate(registry, owner, session_id, lambda s: s.skip_current())


@router.delete("/sessions/{session_id}", response_model=SessionView)
def abandon(
    session_id: str,
    owner: str = Depends(get_owner),
    registry: SessionRegistry = Depends(get_registry),
):
    """Abandon the session. Grades already given stay committed."""
    return _operate(registry, owner, session_id, lambda s: s.abandon())

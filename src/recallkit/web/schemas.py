"""Request and response bodies for the web API."""

from pydantic import BaseModel, Field

from recallkit.core.models import Card
from recallkit.core.session import CardPhase, ReviewSession, SessionStatus


class CardCreate(BaseModel):
    front: str
    back: str
    path_id: str | None = None


class SessionCreate(BaseModel):
    limit: int | None = Field(default=None, ge=1)
    path_id: str | None = None


class GradeRequest(BaseModel):
    success: bool


class SessionCard(BaseModel):
    """The card in flight. ``back`` stays hidden until revealed."""

    id: str
    front: str
    back: str | None = None
    difficulty: int
    version: int


class SessionView(BaseModel):
    session_id: str
    status: SessionStatus
    phase: CardPhase | None = None
    card: SessionCard | None = None
    queued: int
    graded: int
    succeeded: int
    skipped: int
    remaining: int
    last_graded: Card | None = None

    @classmethod
    def build(cls, session_id: str, session: ReviewSession) -> "SessionView":
        summary = session.summary()
        card = None
        if session.current is not None:
            current = session.current
            card = SessionCard(
                id=current.id,
                front=current.front,
                back=current.back if session.phase == CardPhase.REVEALED else None,
                difficulty=current.difficulty,
                version=current.version,
            )
        return cls(
            session_id=session_id,
            status=summary.status,
            phase=session.phase,
            card=card,
            queued=summary.queued,
            graded=summary.graded,
            succeeded=summary.succeeded,
            skipped=summary.skipped,
            remaining=summary.remaining,
            last_graded=session.graded[-1] if session.graded else None,
        )

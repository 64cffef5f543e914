"""Card creation and lookup routes."""

from fastapi import APIRouter, Depends, Query

from recallkit.core.clock import Clock
from recallkit.core.models import Card
from recallkit.core.storage import CardStore
from recallkit.web.dependencies import get_clock, get_owner, get_settings, get_store
from recallkit.web.schemas import CardCreate

router = APIRouter()


@router.post("", status_code=201, response_model=Card)
def create_card(
    body: CardCreate,
    owner: str = Depends(get_owner),
    store: CardStore = Depends(get_store),
):
    """Create a card. It is due immediately."""
    card = Card(owner=owner, front=body.front, back=body.back, path_id=body.path_id)
    return store.create(card)


@router.get("/due", response_model=list[Card])
def due_cards(
    limit: int | None = Query(default=None, ge=1),
    path_id: str | None = None,
    owner: str = Depends(get_owner),
    store: CardStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Cards due now, in review order."""
    return store.query_due(owner, clock.now(), limit or get_settings().session_limit, path_id)


@router.get("/{card_id}", response_model=Card)
def get_card(
    card_id: str,
    owner: str = Depends(get_owner),
    store: CardStore = Depends(get_store),
):
    """Load one card."""
    return store.get(owner, card_id)

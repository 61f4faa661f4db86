from fastapi import APIRouter, Depends

from stylist_app.credits.service import CreditService
from stylist_app.dependencies import get_credit_service
from stylist_app.schemas.api import CreditsConsumeRequest, CreditsResponse

router = APIRouter(prefix="/credits", tags=["credits"])


@router.post("/consume", response_model=CreditsResponse)
async def consume_credits(
    body: CreditsConsumeRequest,
    credits: CreditService = Depends(get_credit_service)
):
    """Debit the cost of `action`; ok is False when the session can't afford it"""
    cost = credits.get_action_cost(body.action)
    result = await credits.consume_credits(body.session_id, cost, body.action)
    return CreditsResponse(ok=result.ok, session_id=body.session_id, remaining=result.remaining)


@router.get("/{session_id}", response_model=CreditsResponse)
async def get_balance(
    session_id: str,
    credits: CreditService = Depends(get_credit_service)
):
    balance = await credits.check_credits(session_id)
    return CreditsResponse(ok=True, session_id=session_id, remaining=balance)

from fastapi import APIRouter, Depends, HTTPException

from cleancar.api.deps import get_current_user
from cleancar.api.errors import to_http_exception
from cleancar.api.v1.schemas import (
    ConfirmPurchaseRequestSchema,
    ConfirmPurchaseResponseSchema,
    InitiatePurchaseRequestSchema,
    InitiatePurchaseResponseSchema,
    PackListResponseSchema,
    PurchaseListResponseSchema,
    PurchaseSchema,
    pack_schema_from_offer,
)
from cleancar.application.exceptions import CleanCarError
from cleancar.application.use_cases.points_ledger import PointsLedger
from cleancar.application.use_cases.purchases import PurchaseUseCase
from cleancar.domain.entities.purchase import PurchaseStatus
from cleancar.domain.entities.user import User
from cleancar.wiring.dependencies import get_points_ledger, get_purchase_use_case

router = APIRouter(prefix="/packs")


@router.get("", response_model=PackListResponseSchema)
def list_packs(uc: PurchaseUseCase = Depends(get_purchase_use_case)):
    return PackListResponseSchema(packs=[pack_schema_from_offer(o) for o in uc.list_offers()])


@router.post("/purchase", response_model=InitiatePurchaseResponseSchema, status_code=201)
def initiate_purchase(
    req: InitiatePurchaseRequestSchema,
    user: User = Depends(get_current_user),
    uc: PurchaseUseCase = Depends(get_purchase_use_case),
):
    try:
        result = uc.initiate(user.id, req.pack_id)
    except CleanCarError as e:
        raise to_http_exception(e)

    return InitiatePurchaseResponseSchema(
        payment_intent_id=result.external_id,
        client_secret=result.client_secret,
        purchase_id=result.purchase.id,
        status=result.purchase.status,
        amount=result.purchase.amount / 100,
        currency=result.purchase.currency,
    )


@router.post("/confirm", response_model=ConfirmPurchaseResponseSchema)
def confirm_purchase(
    req: ConfirmPurchaseRequestSchema,
    user: User = Depends(get_current_user),
    uc: PurchaseUseCase = Depends(get_purchase_use_case),
    ledger: PointsLedger = Depends(get_points_ledger),
):
    try:
        result = uc.reconcile(req.payment_intent_id, requestor_id=user.id)
    except CleanCarError as e:
        raise to_http_exception(e)

    if result.purchase.status in (PurchaseStatus.failed, PurchaseStatus.canceled):
        raise HTTPException(
            status_code=400,
            detail={
                "code": f"payment_{result.purchase.status.value}",
                "message": result.purchase.failure_reason or "Payment was not completed",
            },
        )

    return ConfirmPurchaseResponseSchema(
        status=result.purchase.status,
        points_awarded=result.points_awarded,
        already_processed=result.already_processed,
        points_balance=ledger.balance(user.id),
    )


@router.get("/purchases", response_model=PurchaseListResponseSchema)
def purchase_history(
    user: User = Depends(get_current_user),
    uc: PurchaseUseCase = Depends(get_purchase_use_case),
):
    return PurchaseListResponseSchema(purchases=[PurchaseSchema.from_entity(p) for p in uc.list_history(user.id)])

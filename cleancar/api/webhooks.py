from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from cleancar.wiring.dependencies import get_purchase_use_case


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhooks/payments")
async def payments_webhook(request: Request) -> Response:
    try:
        try:
            use_case = get_purchase_use_case()
        except Exception as e:
            logger.exception("Failed to initialize use case", extra={"error": str(e)})
            return Response(status_code=500)

        body = await request.body()
        signature = request.headers.get("Stripe-Signature")

        event = await run_in_threadpool(use_case.handle_webhook, body, signature)
        if event is None:
            return JSONResponse(status_code=400, content={"error": "Webhook signature verification failed"})

        return JSONResponse(
            status_code=200,
            content={"received": True, "event_type": event.event_type, "event_id": event.event_id},
        )
    except Exception as e:
        logger.exception("Fatal error in payments webhook", extra={"error": str(e)})
        return Response(status_code=500)

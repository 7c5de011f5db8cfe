"""USSD gateway webhook."""

import logging

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from smarthealth.flows import handle_ussd
from smarthealth.schemas.channel_schema import UssdRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ussd"])


@router.post("/ussd", response_class=PlainTextResponse)
async def ussd(request: Request) -> PlainTextResponse:
    """Africa's Talking posts form fields; JSON bodies are accepted too."""
    if request.headers.get("content-type", "").startswith("application/json"):
        data = await request.json()
    else:
        data = dict(await request.form())
    try:
        body = UssdRequest.model_validate(data)
    except ValidationError as e:
        logger.warning("Malformed USSD request: %s", e.errors())
        return PlainTextResponse("END Invalid request", status_code=400)

    response = await run_in_threadpool(
        handle_ussd, body.sessionId, body.serviceCode, body.phoneNumber, body.text,
    )
    return PlainTextResponse(response.body)

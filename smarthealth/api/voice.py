"""Voice IVR webhooks for the caller's and the doctor's call legs."""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from smarthealth.flows import doctor_leg, voice_call
from smarthealth.schemas.channel_schema import VoiceEvent
from smarthealth.voice.renderers import XML_MEDIA_TYPE, get_renderer
from smarthealth.voice.script import CallScript

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/voice", tags=["voice"])


async def _event(request: Request) -> VoiceEvent:
    form = await request.form()
    return VoiceEvent.from_form(form)


def _xml(script: CallScript) -> Response:
    return Response(content=get_renderer().render(script), media_type=XML_MEDIA_TYPE)


async def _answer(request: Request, step: Callable[[VoiceEvent], CallScript]) -> Response:
    event = await _event(request)
    return _xml(await run_in_threadpool(step, event))


@router.post("/incoming")
async def incoming(request: Request) -> Response:
    return await _answer(request, voice_call.incoming)


@router.post("/menu")
async def menu(request: Request) -> Response:
    return await _answer(request, voice_call.menu)


@router.post("/select-doctor")
async def select_doctor(request: Request) -> Response:
    return await _answer(request, voice_call.select_doctor)


@router.post("/process-symptoms")
async def process_symptoms(request: Request) -> Response:
    return await _answer(request, voice_call.process_symptoms)


@router.post("/wait-for-doctor")
async def wait_for_doctor(request: Request) -> Response:
    return await _answer(request, voice_call.wait_for_doctor)


@router.post("/call-completed")
async def call_completed(request: Request) -> Response:
    return await _answer(request, voice_call.call_completed)


@router.post("/call-status")
async def call_status(request: Request) -> PlainTextResponse:
    event = await _event(request)
    await run_in_threadpool(voice_call.call_status, event)
    return PlainTextResponse("OK")


@router.post("/transcription")
async def transcription(request: Request) -> PlainTextResponse:
    event = await _event(request)
    await run_in_threadpool(voice_call.transcription, event)
    return PlainTextResponse("OK")


@router.post("/doctor-call")
async def doctor_call(request: Request, requestId: Optional[str] = None) -> Response:
    return _xml(await run_in_threadpool(doctor_leg.offer, requestId))


@router.post("/doctor-response")
async def doctor_response(request: Request, requestId: Optional[str] = None) -> Response:
    event = await _event(request)
    return _xml(await run_in_threadpool(doctor_leg.respond, requestId, event))


@router.post("/doctor-call-status")
async def doctor_call_status(request: Request, requestId: Optional[str] = None) -> PlainTextResponse:
    event = await _event(request)
    await run_in_threadpool(doctor_leg.call_status, requestId, event)
    return PlainTextResponse("OK")

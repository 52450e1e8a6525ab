"""
Twilio voice webhooks.

One POST endpoint per dialogue step. Each route parses the form Twilio posts,
hands the values to the matching step in call_flow.flow_graph, and always
answers 200 with TwiML, even when the step fails.
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from twilio.request_validator import RequestValidator

from call_flow.flow_graph import (
    PROCESS_DOB_PATH,
    PROCESS_HCN_PATH,
    PROCESS_NAME_PATH,
    RECORDING_COMPLETE_PATH,
    WELCOME_PATH,
    process_dob_step,
    process_hcn_step,
    process_name_step,
    recording_complete_step,
    render,
    run_step,
    welcome_step,
)
from call_flow.settings import IVRSettings, get_settings
from hcn_tool.hcn_validator import create_validator
from modules.public_url import build_public_url

logger = logging.getLogger(__name__)


async def verify_twilio_signature(request: Request, settings: IVRSettings = Depends(get_settings)):
    """
    Reject requests that were not signed by Twilio, when enabled.

    The signature covers the public URL (as Twilio called it, including the
    query string) and the POSTed form fields.
    """
    if not settings.validate_signature:
        return

    url = build_public_url(request, request.url.path)
    if request.url.query:
        url = f"{url}?{request.url.query}"
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}
    signature = request.headers.get("X-Twilio-Signature", "")

    if not signature or not RequestValidator(settings.twilio_auth_token).validate(url, params, signature):
        logger.warning(f"Rejected request with missing or invalid X-Twilio-Signature for {url}")
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")


def get_hcn_validator(settings: IVRSettings = Depends(get_settings)):
    return create_validator(settings.hcn_lookup_url, settings.hcn_lookup_timeout)


router = APIRouter(dependencies=[Depends(verify_twilio_signature)])


async def _read_form(request: Request) -> Dict[str, str]:
    form = await request.form()
    fields = {key: str(value) for key, value in form.items()}
    for key, value in fields.items():
        logger.info(f"Form field: {key} = {value}")
    return fields


def _twiml(content: str) -> Response:
    return Response(content=content, media_type="application/xml")


def _url_builder(request: Request):
    return lambda path: build_public_url(request, path)


@router.post(WELCOME_PATH)
async def welcome(request: Request, settings: IVRSettings = Depends(get_settings)):
    result = await run_step(WELCOME_PATH, lambda: welcome_step(_url_builder(request), settings))
    return _twiml(render(result, settings))


@router.post(PROCESS_HCN_PATH)
async def process_hcn(
    request: Request,
    settings: IVRSettings = Depends(get_settings),
    validator=Depends(get_hcn_validator),
):
    async def step():
        form = await _read_form(request)
        return await process_hcn_step(
            digits=form.get("Digits", ""),
            caller=form.get("From", ""),
            carried_hcn=request.query_params.get("hcn"),
            validator=validator,
            url_for=_url_builder(request),
            settings=settings,
        )

    return _twiml(render(await run_step(PROCESS_HCN_PATH, step), settings))


@router.post(PROCESS_DOB_PATH)
async def process_dob(request: Request, settings: IVRSettings = Depends(get_settings)):
    async def step():
        form = await _read_form(request)
        return await process_dob_step(
            digits=form.get("Digits", ""),
            caller=form.get("From", ""),
            carried_hcn=request.query_params.get("hcn"),
            url_for=_url_builder(request),
            settings=settings,
        )

    return _twiml(render(await run_step(PROCESS_DOB_PATH, step), settings))


@router.post(PROCESS_NAME_PATH)
async def process_name(request: Request, settings: IVRSettings = Depends(get_settings)):
    async def step():
        form = await _read_form(request)
        return await process_name_step(
            speech=form.get("SpeechResult", ""),
            caller=form.get("From", ""),
            carried_hcn=request.query_params.get("hcn"),
            carried_dob=request.query_params.get("dob"),
            settings=settings,
        )

    return _twiml(render(await run_step(PROCESS_NAME_PATH, step), settings))


@router.post(RECORDING_COMPLETE_PATH)
async def recording_complete(request: Request, settings: IVRSettings = Depends(get_settings)):
    async def step():
        logger.info(f"---- {RECORDING_COMPLETE_PATH} invoked ----")
        form = await _read_form(request)
        return await recording_complete_step(
            recording_url=form.get("RecordingUrl", ""),
            caller=form.get("From", ""),
            duration=form.get("RecordingDuration"),
            carried_hcn=request.query_params.get("hcn"),
            settings=settings,
        )

    return _twiml(render(await run_step(RECORDING_COMPLETE_PATH, step), settings))

"""VIN decoding and diagnostic advice over the order's full context."""

from __future__ import annotations

import json
import logging
import re

from pydantic import BaseModel, Field, ValidationError

from ckflow.agents.llm_provider import InlineAsset, LLMProvider
from ckflow.agents.prompts import (
    DIAGNOSTIC_CONTEXT_PROMPT, DIAGNOSTIC_ERROR_TEXT, DIAGNOSTIC_SYSTEM_PROMPT,
    EMPTY_ADVICE_TEXT, VIN_DECODE_PROMPT, VIN_DECODE_SYSTEM_PROMPT,
)
from ckflow.schemas.order import Attachment, DecodedVehicle, LogEntry, RepairOrder

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(.+?);base64,(.*)$", re.DOTALL)


class VehicleProfile(BaseModel):
    model: str = ""
    vin: str = ""
    info: str = ""
    is_insurance: bool = False


class DiagnosticContext(BaseModel):
    vehicle: VehicleProfile
    event_log: list[LogEntry] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    user_message: str

    @classmethod
    def for_order(cls, order: RepairOrder, user_message: str) -> DiagnosticContext:
        return cls(
            vehicle=VehicleProfile(
                model=order.model,
                vin=order.vin,
                info=order.info,
                is_insurance=order.is_insurance_case,
            ),
            event_log=order.logs,
            attachments=order.attachments,
            user_message=user_message,
        )


def parse_data_url(value: str | None) -> tuple[str, str] | None:
    """Split a ``data:<mime>;base64,<payload>`` URL into (mime, payload)."""
    if not value:
        return None
    match = _DATA_URL.match(value)
    if not match:
        return None
    return match.group(1), match.group(2)


def _usable(mime_type: str) -> bool:
    return mime_type.startswith("image/") or mime_type == "application/pdf"


def collect_assets(context: DiagnosticContext) -> list[InlineAsset]:
    """Images/PDFs from the activity log first, then the order's attachments."""
    assets = []
    for entry in context.event_log:
        parsed = parse_data_url(entry.image_url)
        if parsed and _usable(parsed[0]):
            assets.append(InlineAsset(mime_type=parsed[0], data=parsed[1], name=f"log-{entry.id}"))
    for att in context.attachments:
        parsed = parse_data_url(att.data)
        if parsed and _usable(parsed[0]):
            assets.append(InlineAsset(mime_type=parsed[0], data=parsed[1], name=att.name))
    return assets


def build_diagnostic_prompt(context: DiagnosticContext) -> str:
    vehicle = context.vehicle
    attachments = "\n".join(f"- File: {a.name} ({a.type})" for a in context.attachments)
    event_log = "\n".join(
        f"[{e.timestamp:%Y-%m-%d %H:%M}] {e.user}: {e.text}{' [IMAGE ATTACHED]' if e.image_url else ''}"
        for e in context.event_log
    )
    return DIAGNOSTIC_CONTEXT_PROMPT.format(
        model=vehicle.model,
        vin=vehicle.vin or "NOT PROVIDED",
        info=vehicle.info,
        insurance="YES" if vehicle.is_insurance else "NO",
        attachments=attachments or "(none)",
        event_log=event_log or "(empty)",
        user_message=context.user_message,
    )


async def get_diagnostic_advice(context: DiagnosticContext, provider: LLMProvider) -> str:
    """Ask the provider for advice; failures become a user-visible placeholder."""
    prompt = build_diagnostic_prompt(context)
    assets = collect_assets(context)
    try:
        if assets:
            advice = await provider.analyze_assets(prompt, assets, system=DIAGNOSTIC_SYSTEM_PROMPT)
        else:
            advice = await provider.chat(prompt, system=DIAGNOSTIC_SYSTEM_PROMPT)
    except Exception as e:
        logger.error(f"Diagnostic advice failed: {e}")
        return DIAGNOSTIC_ERROR_TEXT
    return advice.strip() or EMPTY_ADVICE_TEXT


def parse_decode_response(response: str) -> DecodedVehicle | None:
    try:
        text = response.strip()
        if "```json" in text:
            text = text.split("```json")[1].split("```")[0]
        elif "```" in text:
            text = text.split("```")[1].split("```")[0]
        data = json.loads(text)
    except (json.JSONDecodeError, IndexError):
        return None
    if not isinstance(data, dict):
        return None
    if "bodyStyle" in data and "body_style" not in data:
        data["body_style"] = data.pop("bodyStyle")
    cleaned = {k: str(v) for k, v in data.items() if v not in (None, "") and k in DecodedVehicle.model_fields}
    if not cleaned:
        return None
    try:
        return DecodedVehicle(**cleaned)
    except ValidationError:
        return None


async def decode_vin(vin: str, provider: LLMProvider) -> DecodedVehicle | None:
    """Best-effort VIN decode; ``None`` when the VIN is unknown or the call fails."""
    vin = vin.strip()
    if not vin:
        return None
    try:
        response = await provider.chat(VIN_DECODE_PROMPT.format(vin=vin), system=VIN_DECODE_SYSTEM_PROMPT)
    except Exception as e:
        logger.error(f"VIN decode failed for {vin}: {e}")
        return None
    decoded = parse_decode_response(response)
    if decoded is None:
        logger.warning(f"VIN decode returned nothing usable for {vin}")
    return decoded

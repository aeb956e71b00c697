"""Helpers for reading property payloads from JSON or multipart requests."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Tuple

from fastapi import Request
from starlette.datastructures import FormData, UploadFile

from services.media_store import ImageUpload
from utils.error_handling import ValidationError

FILE_FIELDS = ("image", "images")
_BRACKET_KEY = re.compile(r"^(\w+)\[(\w+)\]$")


def _is_form(content_type: str) -> bool:
    return content_type.startswith("multipart/form-data") or content_type.startswith(
        "application/x-www-form-urlencoded"
    )


async def read_payload(request: Request) -> Tuple[Dict[str, Any], List[ImageUpload]]:
    """Return the request's field mapping and any uploaded images."""

    content_type = request.headers.get("content-type", "")
    if _is_form(content_type):
        form = await request.form()
        try:
            return _form_fields(form), await _form_images(form)
        finally:
            await form.close()

    body = await request.body()
    if not body.strip():
        return {}, []
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise ValidationError.single("body", "Malformed JSON body") from exc
    if not isinstance(data, dict):
        raise ValidationError.single("body", "Request body must be a JSON object")
    return data, []


async def read_images(request: Request) -> List[ImageUpload]:
    content_type = request.headers.get("content-type", "")
    if not _is_form(content_type):
        return []
    form = await request.form()
    try:
        return await _form_images(form)
    finally:
        await form.close()


async def _form_images(form: FormData) -> List[ImageUpload]:
    images = []
    for field in FILE_FIELDS:
        for item in form.getlist(field):
            if not isinstance(item, UploadFile):
                continue
            data = await item.read()
            if not data and not item.filename:
                continue
            images.append(
                ImageUpload(
                    filename=item.filename or field,
                    content_type=item.content_type or "",
                    data=data,
                )
            )
    return images


def _parse_json_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _parse_list(values: List[str]) -> List[Any]:
    if len(values) == 1:
        value = values[0].strip()
        parsed = _parse_json_value(value)
        if isinstance(parsed, list):
            return parsed
        return [part.strip() for part in value.split(",") if part.strip()]
    return values


def _form_fields(form: FormData) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    location: Dict[str, Any] = {}

    for key in dict.fromkeys(form.keys()):
        if key in FILE_FIELDS:
            continue
        values = [value for value in form.getlist(key) if isinstance(value, str)]
        if not values:
            continue

        bracket = _BRACKET_KEY.match(key)
        if bracket:
            key = f"{bracket.group(1)}.{bracket.group(2)}"

        if key.startswith("location."):
            sub_key = key.split(".", 1)[1]
            raw = values[-1].strip()
            if sub_key == "coordinates":
                location[sub_key] = _parse_list(values) if raw else None
            elif raw:
                location[sub_key] = raw
            continue

        if key in {"features", "imageUrls"}:
            fields[key] = _parse_list(values)
            continue

        raw = values[-1]
        if key == "location":
            parsed = _parse_json_value(raw)
            if isinstance(parsed, dict):
                location.update(parsed)
            elif raw.strip():
                fields[key] = raw
            continue

        # Empty form inputs mean "not supplied"
        if raw.strip() == "":
            continue
        fields[key] = raw

    if location:
        fields["location"] = location
    return fields

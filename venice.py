"""Venice AI pipelines.

Two-stage: a vision model describes the plate, then a text model turns the
description into nutrition JSON constrained by ``NUTRITION_SCHEMA``.
Single-stage: the vision model is asked for the JSON directly.

Venice speaks the OpenAI chat-completions dialect, so requests go through the
``openai`` SDK with Venice's base URL; ``venice_parameters`` travel in
``extra_body``.
"""
import logging
import time

import openai
from openai import OpenAI

import config
import prompts
from errors import (
    EmptyResponseError,
    MissingApiKeyError,
    ModelNotFoundError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
    SchemaNotSupportedError,
)
from imaging import to_small_jpeg
from json_repair import extract_text_from_response, parse_json_object
from nutrition import NUTRITION_SCHEMA, demo_summary, normalize_summary

log = logging.getLogger(__name__)

_base_client = OpenAI(api_key=config.VENICE_API_KEY, base_url=config.VENICE_BASE_URL, timeout=config.VENICE_TIMEOUT)
client = _base_client.with_options(max_retries=config.VENICE_MAX_RETRIES)

QUOTA_STATUSES = (402, 429)


def _error_text(e):
    response = getattr(e, "response", None)
    if response is not None and response.text:
        return response.text
    return getattr(e, "message", None) or str(e)


def _as_dict(resp):
    if hasattr(resp, "model_dump"):
        return resp.model_dump()
    return resp


def call_venice(body):
    if not config.VENICE_API_KEY:
        raise MissingApiKeyError("Venice API key not configured (set VENICE_API_KEY)")
    params = dict(body)
    extra_body = {}
    if "venice_parameters" in params:
        extra_body["venice_parameters"] = params.pop("venice_parameters")
    try:
        resp = client.chat.completions.create(extra_body=extra_body or None, **params)
    except openai.APITimeoutError as e:
        raise ProviderTimeoutError(
            "Request timed out. Please check your connection and try again.", provider="venice"
        ) from e
    except openai.APIConnectionError as e:
        raise ProviderConnectionError(
            "Network error. Please check your internet connection and try again.", provider="venice"
        ) from e
    except openai.NotFoundError as e:
        log.error("Venice API error: 404 %s", _error_text(e))
        raise ModelNotFoundError(
            "Model not found (404). The selected model may not be available. Please try again or contact support.",
            provider="venice", status=404,
        ) from e
    except openai.APIStatusError as e:
        text = _error_text(e)
        log.error("Venice API error: %s %s", e.status_code, text)
        lowered = (text or "").lower()
        if "response_format" in lowered and "not supported" in lowered:
            raise SchemaNotSupportedError(
                f"Venice API error ({e.status_code}): {text}", provider="venice", status=e.status_code
            ) from e
        raise ProviderError(
            f"Venice API error ({e.status_code}): {text or 'Unknown error'}",
            provider="venice", status=e.status_code,
        ) from e
    return _as_dict(resp)


def _call_vision(body):
    # Retry once on the fallback vision model; network failures are not retried here.
    try:
        return call_venice(body)
    except (ProviderTimeoutError, ProviderConnectionError, SchemaNotSupportedError):
        raise
    except ProviderError as e:
        fallback = config.VENICE_VISION_MODEL_FALLBACK
        if not fallback or fallback == body.get("model") or e.status in QUOTA_STATUSES:
            raise
        log.warning("Vision model %s failed (%s), retrying with %s", body.get("model"), e, fallback)
        return call_venice(dict(body, model=fallback))


def _image_content(image, text, hint=None):
    content = []
    if hint:
        content.append({"type": "text", "text": prompts.hint_text(hint)})
    content.append({"type": "text", "text": text})
    content.append({"type": "image_url", "image_url": {"url": image["data_url"]}})
    return content


def identify_food_from_image(image, hint=None):
    log.info("Stage 1: identifying food with %s", config.VENICE_VISION_MODEL)
    body = {
        "model": config.VENICE_VISION_MODEL,
        "temperature": config.VENICE_TEMPERATURE,
        "venice_parameters": {"include_venice_system_prompt": True},
        "messages": [
            {"role": "system", "content": [{"type": "text", "text": prompts.VISION_SYSTEM_PROMPT}]},
            {"role": "user", "content": _image_content(image, prompts.VISION_PROMPT, hint)},
        ],
    }
    data = _call_vision(body)
    content = extract_text_from_response(data)
    if not content:
        log.error("No content from vision model: %s", data)
        raise EmptyResponseError("Vision model returned no food description")
    log.info("Food identified, description length: %d", len(content))
    return content


def text_model_option(model_id):
    for option in config.VENICE_TEXT_MODELS:
        if option["id"] == model_id:
            return option
    return None


def build_nutrition_request(description, language="english", text_model=None, use_schema=True):
    model_id = text_model or config.VENICE_TEXT_MODEL
    option = text_model_option(model_id) or {}
    reasoning_effort = option.get("reasoning_effort")
    system_prompt, user_prompt = prompts.nutrition_prompts(description, language)
    body = {
        "model": model_id,
        "temperature": config.VENICE_TEMPERATURE,
        "venice_parameters": {
            "include_venice_system_prompt": True,
            "disable_thinking": not reasoning_effort,
            "strip_thinking_response": True,
        },
        "messages": [
            {"role": "system", "content": [{"type": "text", "text": system_prompt}]},
            {"role": "user", "content": [{"type": "text", "text": user_prompt}]},
        ],
    }
    if reasoning_effort:
        body["reasoning_effort"] = reasoning_effort
    if use_schema:
        body["response_format"] = {
            "type": "json_schema",
            "json_schema": {"name": "nutrition_summary", "schema": NUTRITION_SCHEMA},
        }
    return body


def calculate_nutrition_from_description(description, language="english", text_model=None):
    """Stage 2: description text -> nutrition dict."""
    log.info("Stage 2: calculating nutrition with %s in %s", text_model or config.VENICE_TEXT_MODEL, language)
    try:
        data = call_venice(build_nutrition_request(description, language, text_model, use_schema=True))
    except SchemaNotSupportedError:
        log.warning("Selected model does not support response schemas, retrying with manual JSON instructions")
        data = call_venice(build_nutrition_request(description, language, text_model, use_schema=False))

    content = extract_text_from_response(data)
    if not content:
        log.error("No content from text model: %s", data)
        raise EmptyResponseError("Nutrition calculation returned no content")
    return parse_json_object(content, anchor="title")


def analyze_single_stage(image, hint=None, language="english"):
    log.info("Single-stage analysis with %s", config.VENICE_VISION_MODEL)
    system_prompt, user_prompt = prompts.single_stage_prompts(language)
    body = {
        "model": config.VENICE_VISION_MODEL,
        "temperature": config.VENICE_TEMPERATURE,
        "venice_parameters": {
            "include_venice_system_prompt": True,
            "disable_thinking": True,
            "strip_thinking_response": True,
        },
        "messages": [
            {"role": "system", "content": [{"type": "text", "text": system_prompt}]},
            {"role": "user", "content": _image_content(image, user_prompt, hint)},
        ],
    }
    data = _call_vision(body)
    content = extract_text_from_response(data)
    if not content:
        log.error("No content from vision model: %s", data)
        raise EmptyResponseError("Vision model returned no content")
    return parse_json_object(content, anchor="title")


def analyze_image(source=None, hint=None, language="english", mode="two_stage", text_model=None, image=None):
    """Full Venice analysis of one photo; returns a normalized summary dict.

    Either ``source`` (an upload / file object / bytes) or an already
    processed ``image`` from :func:`imaging.to_small_jpeg` must be given.
    """
    if mode not in config.MODES:
        raise ValueError(f"Unknown analysis mode: {mode}")
    if language not in config.LANGUAGES:
        language = "english"
    hint = (hint or "").strip() or None
    if image is None:
        image = to_small_jpeg(source)
    log.info("Starting %s analysis (vision %s, language %s), base64 size %d",
             mode, config.VENICE_VISION_MODEL, language, len(image["base64"]))

    if config.DEMO_MODE:
        return demo_summary(image["jpeg_bytes"])

    started = time.perf_counter()
    try:
        if mode == "single_stage":
            raw = analyze_single_stage(image, hint, language)
        else:
            description = identify_food_from_image(image, hint)
            raw = calculate_nutrition_from_description(description, language, text_model)
    except ProviderError as e:
        if config.FALLBACK_TO_DEMO_ON_QUOTA and e.status in QUOTA_STATUSES:
            log.warning("Venice quota exhausted (%s), returning demo result", e.status)
            summary = demo_summary(image["jpeg_bytes"])
            summary["notes"].append(f"Venice quota reached ({e.status}); showing demo values.")
            return summary
        raise
    summary = normalize_summary(raw)
    log.info("Analysis complete in %.2fs: %s, %d kcal",
             time.perf_counter() - started, summary["title"], summary["totalCalories"])
    return summary

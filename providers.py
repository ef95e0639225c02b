"""Comparison providers: one config per hosted model and a unified caller.

Venice and Grok speak the OpenAI chat-completions dialect and go through the
``openai`` SDK, Gemini goes through ``google-genai`` and MiniMax is a plain
``requests`` POST to its chatcompletion_v2 endpoint.
"""
import base64
import json
import logging
import threading
import time

import httpx
import openai
import requests
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import OpenAI

import config
import prompts
import venice
from errors import (
    EmptyResponseError,
    MissingApiKeyError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
)
from json_repair import extract_text_from_response, parse_json_object
from nutrition import ensure_integer_values, normalize_identification, normalize_summary

log = logging.getLogger(__name__)

VENICE_CONFIG = {
    "name": "venice",
    "display_name": "Venice AI",
    "endpoint": config.VENICE_BASE_URL + "/chat/completions",
    "api_key_env": "VENICE_API_KEY",
    "timeout": 300.0,
    "temperature": 0.3,
    "model": config.VENICE_VISION_MODEL,
}

GEMINI_FLASH_CONFIG = {
    "name": "gemini-3-flash",
    "display_name": "Gemini 3 Flash",
    "endpoint": "https://generativelanguage.googleapis.com/v1beta",
    "api_key_env": "GEMINI_API_KEY",
    "timeout": 30.0,
    "temperature": 0.3,
    "model": config.GEMINI_MODEL,
}

MINIMAX_M21_CONFIG = {
    "name": "minimax-m21",
    "display_name": "MiniMax M21",
    "endpoint": "https://api.minimax.chat/v1/text/chatcompletion_v2",
    "api_key_env": "MINIMAX_API_KEY",
    "timeout": 25.0,
    "temperature": 0.4,
    "model": config.MINIMAX_MODEL,
}

GROK_41_CONFIG = {
    "name": "grok-41-fast",
    "display_name": "Grok 41 Fast",
    "endpoint": "https://api.x.ai/v1",
    "api_key_env": "GROK_API_KEY",
    "timeout": 20.0,
    "temperature": 0.5,
    "model": config.GROK_MODEL,
    "max_tokens": 2048,
}

MODEL_CONFIGS = [VENICE_CONFIG, GEMINI_FLASH_CONFIG, MINIMAX_M21_CONFIG, GROK_41_CONFIG]

_clients = {}
_clients_lock = threading.Lock()


def get_config(name):
    for cfg in MODEL_CONFIGS:
        if cfg["name"] == name:
            return cfg
    return None


def api_key_for(cfg):
    return getattr(config, cfg["api_key_env"], "") or ""


def is_configured(cfg):
    return bool(api_key_for(cfg))


def _timeout_error(cfg):
    return ProviderTimeoutError(
        f"{cfg['name']} API request timed out after {int(cfg['timeout'] * 1000)}ms", provider=cfg["name"]
    )


def _status_error(cfg, status, text):
    return ProviderError(f"{cfg['name']} API error ({status}): {text}", provider=cfg["name"], status=status)


def _chat_messages(prompt, image_b64, is_image_request):
    if not is_image_request:
        return [{"role": "user", "content": prompt}]
    return [{
        "role": "user",
        "content": [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"}},
        ],
    }]


def _call_venice(cfg, image_b64, prompt, is_image_request):
    body = {
        "model": cfg["model"],
        "messages": _chat_messages(prompt, image_b64, is_image_request),
        "temperature": cfg["temperature"],
        "venice_parameters": {"include_venice_system_prompt": True},
    }
    return venice.call_venice(body)


def _client(cfg, api_key, build):
    # one client per provider and key, reused across requests
    key = (cfg["name"], api_key)
    with _clients_lock:
        if key not in _clients:
            _clients[key] = build()
        return _clients[key]


def _call_grok(cfg, api_key, image_b64, prompt, is_image_request):
    grok = _client(cfg, api_key, lambda: OpenAI(
        api_key=api_key, base_url=cfg["endpoint"], timeout=cfg["timeout"], max_retries=0,
    ))
    try:
        resp = grok.chat.completions.create(
            model=cfg["model"],
            messages=_chat_messages(prompt, image_b64, is_image_request),
            temperature=cfg["temperature"],
            max_tokens=cfg.get("max_tokens", 2048),
        )
    except openai.APITimeoutError as e:
        raise _timeout_error(cfg) from e
    except openai.APIConnectionError as e:
        raise ProviderConnectionError(f"{cfg['name']} network error: {e}", provider=cfg["name"]) from e
    except openai.APIStatusError as e:
        raise _status_error(cfg, e.status_code, getattr(e, "message", str(e))) from e
    return resp.model_dump() if hasattr(resp, "model_dump") else resp


def _call_gemini(cfg, api_key, image_b64, prompt, is_image_request):
    gclient = _client(cfg, api_key, lambda: genai.Client(
        api_key=api_key,
        http_options=genai_types.HttpOptions(timeout=int(cfg["timeout"] * 1000)),
    ))
    contents = [prompt]
    if is_image_request:
        contents.append(genai_types.Part.from_bytes(data=base64.b64decode(image_b64), mime_type="image/jpeg"))
    try:
        resp = gclient.models.generate_content(
            model=cfg["model"],
            contents=contents,
            config=genai_types.GenerateContentConfig(
                temperature=cfg["temperature"],
                response_mime_type="application/json",
            ),
        )
    except httpx.TimeoutException as e:
        raise _timeout_error(cfg) from e
    except httpx.TransportError as e:
        raise ProviderConnectionError(f"{cfg['name']} network error: {e}", provider=cfg["name"]) from e
    except genai_errors.APIError as e:
        raise _status_error(cfg, e.code, e.message or str(e)) from e
    # keep the wire shape so extract_text_from_response handles every provider alike
    return {"candidates": [{"content": {"parts": [{"text": resp.text or ""}]}}]}


def _call_minimax(cfg, api_key, image_b64, prompt, is_image_request):
    try:
        resp = requests.post(
            cfg["endpoint"],
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            json={
                "model": cfg["model"],
                "messages": _chat_messages(prompt, image_b64, is_image_request),
                "temperature": cfg["temperature"],
            },
            timeout=cfg["timeout"],
        )
    except requests.Timeout as e:
        raise _timeout_error(cfg) from e
    except requests.ConnectionError as e:
        raise ProviderConnectionError(f"{cfg['name']} network error: {e}", provider=cfg["name"]) from e
    if not resp.ok:
        raise _status_error(cfg, resp.status_code, resp.text)
    return resp.json()


def call_model_api(cfg, image_b64, prompt, is_image_request=True):
    api_key = api_key_for(cfg)
    if not api_key:
        raise MissingApiKeyError(f"{cfg['name']} API key not configured")
    name = cfg["name"]
    if name == VENICE_CONFIG["name"]:
        return _call_venice(cfg, image_b64, prompt, is_image_request)
    if name == GEMINI_FLASH_CONFIG["name"]:
        return _call_gemini(cfg, api_key, image_b64, prompt, is_image_request)
    if name == MINIMAX_M21_CONFIG["name"]:
        return _call_minimax(cfg, api_key, image_b64, prompt, is_image_request)
    if name == GROK_41_CONFIG["name"]:
        return _call_grok(cfg, api_key, image_b64, prompt, is_image_request)
    raise ValueError(f"Unsupported model: {name}")


def _response_text(cfg, data):
    text = extract_text_from_response(data)
    if not text:
        raise EmptyResponseError(f"{cfg['display_name']} returned no content")
    return text


def identify_with(cfg, image_b64):
    alternative = cfg["name"] == MINIMAX_M21_CONFIG["name"]
    prompt = prompts.IDENTIFY_ALTERNATIVE_PROMPT if alternative else prompts.IDENTIFY_PROMPT
    started = time.perf_counter()
    data = call_model_api(cfg, image_b64, prompt, True)
    log.info("%s food identification completed in %.0fms", cfg["display_name"], (time.perf_counter() - started) * 1000)
    parsed = parse_json_object(_response_text(cfg, data), anchor="items")
    return normalize_identification(parsed, default_confidence=80 if alternative else 85)


def analyze_nutrition_with(cfg, identification, language="english"):
    prompt = prompts.nutrition_from_items_prompt(json.dumps(identification["items"], indent=2), language)
    started = time.perf_counter()
    data = call_model_api(cfg, "", prompt, False)
    log.info("%s nutrition analysis completed in %.0fms", cfg["display_name"], (time.perf_counter() - started) * 1000)
    parsed = parse_json_object(_response_text(cfg, data), anchor="title")
    summary = normalize_summary(ensure_integer_values(parsed, skip=("confidence",)))
    # identification saw the photo, the nutrition call did not
    analysis = summary.setdefault("analysis", {
        "visualObservations": [], "portionEstimate": "", "confidenceNarrative": "", "cautions": [],
    })
    if not analysis["visualObservations"]:
        analysis["visualObservations"] = list(identification.get("visualObservations") or [])
    for extra in identification.get("complementaryItems") or []:
        summary["notes"].append(f"Possibly also present: {extra}")
    return summary


def proxy_venice(raw_body):
    """Forward a chat-completions body to Venice untouched.

    Returns ``(status, content_type, text)``.
    """
    if not config.VENICE_API_KEY:
        return 500, "text/plain", "Venice API key not configured"
    try:
        resp = requests.post(
            VENICE_CONFIG["endpoint"],
            headers={"Authorization": f"Bearer {config.VENICE_API_KEY}", "Content-Type": "application/json"},
            data=raw_body or b"{}",
            timeout=VENICE_CONFIG["timeout"],
        )
    except requests.RequestException as e:
        log.error("Venice proxy request failed: %s", e)
        return 500, "text/plain", str(e)
    return resp.status_code, resp.headers.get("content-type") or "application/json", resp.text

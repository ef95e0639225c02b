"""Pull text out of provider responses and turn it into a JSON object.

Models are asked for strict JSON but regularly wrap it in markdown, prepend a
reasoning block, leave trailing commas or emit unquoted keys. Parsing goes
strict first and only falls back to the regex repairs when that fails, since
the repairs can damage string values that happen to contain ``, word:``.
"""
import json
import logging
import math
import re

from errors import NutritionParseError

log = logging.getLogger(__name__)

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
_FENCE = re.compile(r"```(?:json|JSON)?")
_OBJECT = re.compile(r"\{[\s\S]*\}")

_LONG_DECIMAL = re.compile(r"(\d+)\.\d{50,}")
_DECIMAL_VALUE = re.compile(r":\s*([1-9]\d*\.\d+)")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_UNQUOTED_KEY = re.compile(r"([{,]\s*)(\w+):")
_UNQUOTED_VALUE = re.compile(r':\s*([^",{\[\s][^,}\]\s]*)\s*([,}\]])')
_LITERAL = re.compile(r"^(-?\d+(\.\d+)?([eE][+-]?\d+)?|true|false|null)$")


def _join_parts(parts):
    texts = []
    for item in parts:
        if isinstance(item, str):
            texts.append(item)
        elif isinstance(item, dict) and isinstance(item.get("text"), str):
            texts.append(item["text"])
    return " ".join(t for t in texts if t).strip()


def extract_text_from_response(data):
    """Return the assistant text from any of the response shapes we talk to.

    Handles OpenAI-style ``choices`` (string or list-of-parts content), the
    ``output_text`` / ``output`` shapes of responses-style APIs, Gemini
    ``candidates`` and a bare list of parts. ``None`` when nothing is usable.
    """
    if isinstance(data, str):
        return data.strip() or None
    if isinstance(data, list):
        return _join_parts(data) or None
    if not isinstance(data, dict):
        return None

    choices = data.get("choices") or []
    if choices and isinstance(choices[0], dict):
        content = (choices[0].get("message") or {}).get("content")
        if isinstance(content, str) and content.strip():
            return content
        if isinstance(content, list):
            combined = _join_parts(content)
            if combined:
                return combined

    output_text = data.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text
    if isinstance(output_text, list):
        combined = "\n".join(t for t in output_text if isinstance(t, str)).strip()
        if combined:
            return combined

    response = data.get("response")
    output = data.get("output")
    if output is None and isinstance(response, dict):
        output = response.get("output")
    if isinstance(output, list):
        pieces = []
        for item in output:
            content = item.get("content") if isinstance(item, dict) else None
            if isinstance(content, str):
                pieces.append(content)
            elif isinstance(content, list):
                pieces.append(_join_parts(content))
        combined = " ".join(p for p in pieces if p).strip()
        if combined:
            return combined

    candidates = data.get("candidates") or []
    if candidates and isinstance(candidates[0], dict):
        parts = (candidates[0].get("content") or {}).get("parts") or []
        combined = "".join(p.get("text") or "" for p in parts if isinstance(p, dict)).strip()
        if combined:
            return combined

    return None


def strip_reasoning(text):
    text = _THINK_BLOCK.sub("", text)
    return _FENCE.sub("", text).strip()


def _quote_value(match):
    value = match.group(1)
    if _LITERAL.match(value):
        return match.group(0)
    return f': "{value}"{match.group(2)}'


def clean_json_text(text):
    text = text.replace("\t", " ")
    text = _LONG_DECIMAL.sub(r"\1", text)
    text = _DECIMAL_VALUE.sub(lambda m: ": %d" % math.floor(float(m.group(1)) + 0.5), text)
    text = _TRAILING_COMMA.sub(r"\1", text)
    text = _UNQUOTED_KEY.sub(r'\1"\2":', text)
    text = _UNQUOTED_VALUE.sub(_quote_value, text)
    return text


def _loads_object(text):
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError("top-level JSON value is not an object")
    return value


def _scan_objects(text, anchor):
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except ValueError:
            value = None
        if isinstance(value, dict) and (anchor is None or anchor in value):
            return value
        start = text.find("{", start + 1)
    return None


def parse_json_object(text, anchor=None):
    """Parse the JSON object a model returned, repairing it when needed.

    ``anchor`` names a key the wanted object must carry; it is used when the
    outermost braces enclose more than one object.
    """
    if isinstance(text, dict):
        return text
    if not text or not text.strip():
        raise NutritionParseError("Model returned an empty response", raw=text)

    body = strip_reasoning(text)
    match = _OBJECT.search(body)
    if not match:
        raise NutritionParseError("No JSON found in model response", raw=text)
    candidate = match.group(0)

    try:
        return _loads_object(candidate)
    except ValueError:
        pass

    cleaned = clean_json_text(candidate)
    log.debug("JSON cleaned, preview: %s", cleaned[:200])
    try:
        return _loads_object(cleaned)
    except ValueError as e:
        log.warning("JSON parse failed after cleaning (%s), scanning for embedded object", e)

    found = _scan_objects(cleaned, anchor) or _scan_objects(body, anchor)
    if found is not None:
        return found

    log.error("Failed to parse model JSON, raw content: %s", text[:500])
    raise NutritionParseError(
        "Failed to parse nutrition data. The model returned invalid JSON format.", raw=text
    )

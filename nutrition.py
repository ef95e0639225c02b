import hashlib
import math
import random
import re
from typing import Any, Dict, List

from errors import NutritionParseError

# Shape the text model is asked to return (sent as a json_schema response_format)
NUTRITION_SCHEMA = {
    "type": "object",
    "required": ["title", "confidence", "servingDescription", "totalCalories", "macros"],
    "properties": {
        "title": {"type": "string", "description": "Name of the dish or meal"},
        "confidence": {"type": "number", "description": "Confidence score 1-100 (percentage)"},
        "servingDescription": {"type": "string", "description": "Description of serving size with weight"},
        "totalCalories": {"type": "number", "description": "Total calories"},
        "macros": {
            "type": "object",
            "required": ["protein", "carbs", "fat"],
            "properties": {
                "protein": {
                    "type": "object",
                    "required": ["grams", "calories"],
                    "properties": {"grams": {"type": "number"}, "calories": {"type": "number"}},
                },
                "carbs": {
                    "type": "object",
                    "required": ["grams", "calories"],
                    "properties": {
                        "grams": {"type": "number"},
                        "calories": {"type": "number"},
                        "fiber": {"type": "number"},
                        "sugar": {"type": "number"},
                    },
                },
                "fat": {
                    "type": "object",
                    "required": ["grams", "calories"],
                    "properties": {
                        "grams": {"type": "number"},
                        "calories": {"type": "number"},
                        "saturated": {"type": "number"},
                        "unsaturated": {"type": "number"},
                    },
                },
            },
        },
        "micronutrients": {
            "type": "object",
            "properties": {
                "sodiumMg": {"type": "number"},
                "potassiumMg": {"type": "number"},
                "cholesterolMg": {"type": "number"},
                "calciumMg": {"type": "number"},
                "ironMg": {"type": "number"},
                "vitaminCMg": {"type": "number"},
            },
        },
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "quantity", "calories"],
                "properties": {
                    "name": {"type": "string"},
                    "quantity": {"type": "string"},
                    "calories": {"type": "number"},
                    "massGrams": {"type": "number"},
                },
            },
        },
        "notes": {"type": "array", "items": {"type": "string"}, "description": "Actionable nutritional insights"},
        "analysis": {
            "type": "object",
            "properties": {
                "visualObservations": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Visual cues from the food description",
                },
                "portionEstimate": {"type": "string", "description": "Methodology for portion size estimation"},
                "confidenceNarrative": {"type": "string", "description": "Detailed reasoning for confidence score"},
                "cautions": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Allergens, dietary restrictions, limitations",
                },
            },
        },
    },
}

# macro -> optional sub-fields
MACRO_FIELDS = {
    "protein": (),
    "carbs": ("fiber", "sugar"),
    "fat": ("saturated", "unsaturated"),
}
KCAL_PER_GRAM = {"protein": 4, "carbs": 4, "fat": 9}
MICRONUTRIENT_KEYS = ("sodiumMg", "potassiumMg", "cholesterolMg", "calciumMg", "ironMg", "vitaminCMg")

_DECIMAL_STRING = re.compile(r"^\s*-?\d+\.\d+\s*$")
_CAMEL = re.compile(r"([A-Z])")


def safe_float(x, default=None):
    if isinstance(x, bool):
        return default
    try:
        value = float(x)
    except (TypeError, ValueError):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return value


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _int(x, default=None):
    value = safe_float(x)
    if value is None:
        return default
    return round_half_up(value)


def _text(x) -> str:
    if x is None:
        return ""
    return str(x).strip()


def _strings(x) -> List[str]:
    if isinstance(x, str):
        x = [x]
    if not isinstance(x, list):
        return []
    return [s for s in (_text(v) for v in x if not isinstance(v, (dict, list))) if s]


def ensure_integer_values(obj, skip=()):
    """Round every number (and every decimal-looking string) in a nested value.

    Keys listed in ``skip`` are copied through untouched. Strings are only
    rewritten when the whole string is a decimal number, so quantities such
    as ``"1.5 cups"`` survive.
    """
    if obj is None or isinstance(obj, bool):
        return obj
    if isinstance(obj, (int, float)):
        value = safe_float(obj)
        return obj if value is None else round_half_up(value)
    if isinstance(obj, str):
        if _DECIMAL_STRING.match(obj):
            return str(round_half_up(float(obj)))
        return obj
    if isinstance(obj, list):
        return [ensure_integer_values(v, skip) for v in obj]
    if isinstance(obj, dict):
        return {k: (v if k in skip else ensure_integer_values(v, skip)) for k, v in obj.items()}
    return obj


def normalize_confidence(value) -> int:
    """Confidence as an integer percentage; fractions (0-1] are scaled up."""
    f = safe_float(value)
    if f is None or f <= 0:
        return 0
    if f <= 1:
        f *= 100
    return max(0, min(100, round_half_up(f)))


def normalize_summary(data: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise NutritionParseError("Nutrition data is not a JSON object", raw=data)

    macros_in = data.get("macros") if isinstance(data.get("macros"), dict) else {}
    macros = {}
    for key, extras in MACRO_FIELDS.items():
        src = macros_in.get(key) if isinstance(macros_in.get(key), dict) else {}
        grams = _int(src.get("grams"), 0)
        calories = _int(src.get("calories"))
        if calories is None:
            calories = grams * KCAL_PER_GRAM[key]
        entry = {"grams": grams, "calories": calories}
        for extra in extras:
            value = _int(src.get(extra))
            if value is not None:
                entry[extra] = value
        macros[key] = entry

    items = []
    for it in data.get("items") or []:
        if not isinstance(it, dict) or not _text(it.get("name")):
            continue
        item = {
            "name": _text(it.get("name")),
            "quantity": _text(it.get("quantity")),
            "calories": _int(it.get("calories"), 0),
        }
        mass = _int(it.get("massGrams"))
        if mass is not None:
            item["massGrams"] = mass
        items.append(item)

    total = _int(data.get("totalCalories"))
    if not total:
        total = sum(i["calories"] for i in items) or sum(m["calories"] for m in macros.values())

    summary = {
        "title": _text(data.get("title")) or "Meal",
        "confidence": normalize_confidence(data.get("confidence")),
        "servingDescription": _text(data.get("servingDescription")) or "1 serving",
        "totalCalories": total,
        "macros": macros,
        "items": items,
        "notes": _strings(data.get("notes")),
    }

    micros = data.get("micronutrients")
    if isinstance(micros, dict):
        summary["micronutrients"] = {}
        for key in MICRONUTRIENT_KEYS:
            value = _int(micros.get(key))
            if value is not None:
                summary["micronutrients"][key] = value

    analysis = data.get("analysis")
    if isinstance(analysis, dict):
        summary["analysis"] = {
            "visualObservations": _strings(analysis.get("visualObservations")),
            "portionEstimate": _text(analysis.get("portionEstimate")),
            "confidenceNarrative": _text(analysis.get("confidenceNarrative")),
            "cautions": _strings(analysis.get("cautions")),
        }
    return summary


def fallback_summary(error) -> Dict[str, Any]:
    message = str(error)
    return {
        "title": "Analysis Failed",
        "confidence": 0,
        "servingDescription": "Unable to analyze",
        "totalCalories": 0,
        "macros": {
            "protein": {"grams": 0, "calories": 0},
            "carbs": {"grams": 0, "calories": 0, "fiber": 0, "sugar": 0},
            "fat": {"grams": 0, "calories": 0, "saturated": 0, "unsaturated": 0},
        },
        "micronutrients": {key: 0 for key in MICRONUTRIENT_KEYS},
        "items": [],
        "notes": [f"Error: {message}", "Please try again or use a different model."],
        "analysis": {
            "visualObservations": [],
            "portionEstimate": "Unable to estimate",
            "confidenceNarrative": f"Analysis failed: {message}",
            "cautions": ["This analysis failed and should not be used."],
        },
    }


def demo_summary(seed_bytes: bytes) -> Dict[str, Any]:
    rnd = random.Random(int.from_bytes(hashlib.sha256(seed_bytes).digest()[:4], "big"))
    # name, quantity, grams, kcal/100g, protein/100g, carbs/100g, fat/100g
    rows = [
        ("Penne pasta", "1 cup cooked", 180, 150, 5.0, 30.0, 1.0),
        ("Grilled chicken breast", "1 fillet", 110, 165, 31.0, 0.0, 3.6),
        ("Cucumber slices", "1/2 cup", 60, 16, 0.7, 3.6, 0.1),
        ("Cherry tomatoes", "4 pieces", 60, 18, 0.9, 3.9, 0.2),
    ]
    items = []
    p = c = f = 0.0
    for name, qty, grams, kcal, p100, c100, f100 in rows:
        items.append({
            "name": name,
            "quantity": qty,
            "calories": round_half_up(kcal * grams / 100.0),
            "massGrams": grams,
        })
        p += p100 * grams / 100.0
        c += c100 * grams / 100.0
        f += f100 * grams / 100.0
    total_g = sum(r[2] for r in rows)
    return {
        "title": "Pasta with chicken and vegetables",
        "confidence": rnd.randint(65, 85),
        "servingDescription": f"1 bowl (~{total_g} g)",
        "totalCalories": sum(i["calories"] for i in items),
        "macros": {
            "protein": {"grams": round_half_up(p), "calories": round_half_up(p * 4)},
            "carbs": {"grams": round_half_up(c), "calories": round_half_up(c * 4), "fiber": 3, "sugar": 5},
            "fat": {"grams": round_half_up(f), "calories": round_half_up(f * 9), "saturated": 1, "unsaturated": 4},
        },
        "micronutrients": {
            "sodiumMg": rnd.randint(300, 600),
            "potassiumMg": rnd.randint(500, 800),
            "cholesterolMg": 80,
            "calciumMg": 40,
            "ironMg": 2,
            "vitaminCMg": 15,
        },
        "items": items,
        "notes": ["DEMO: estimate produced without calling the API."],
        "analysis": {
            "visualObservations": ["Demo mode, no image analysis performed."],
            "portionEstimate": "Fixed demo portion.",
            "confidenceNarrative": "Demo values.",
            "cautions": ["Contains gluten."],
        },
    }


def normalize_identification(data: Dict[str, Any], default_confidence: int = 85) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise NutritionParseError("Food identification is not a JSON object", raw=data)
    items = []
    for it in data.get("items") or []:
        if not isinstance(it, dict) or not _text(it.get("name")):
            continue
        items.append({
            "name": _text(it.get("name")),
            "quantity": safe_float(it.get("quantity"), 1.0),
            "unit": _text(it.get("unit")) or "serving",
            "estimatedGrams": _int(it.get("estimatedGrams"), 0),
            "preparation": _text(it.get("preparation")),
            "confidence": normalize_confidence(it.get("confidence")) or default_confidence,
        })
    result = {
        "items": items,
        "overallConfidence": normalize_confidence(data.get("overallConfidence")) or default_confidence,
        "visualObservations": _strings(data.get("visualObservations")),
    }
    if "alternativeObservations" in data or "complementaryItems" in data:
        result["alternativeObservations"] = _strings(data.get("alternativeObservations"))
        result["complementaryItems"] = _strings(data.get("complementaryItems"))
    return result


def pretty_key(key: str) -> str:
    text = _CAMEL.sub(r" \1", key).replace("_", " ").strip()
    return text[:1].upper() + text[1:]
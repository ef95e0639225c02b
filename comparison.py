"""Run the same photo through several providers and collect comparable results.

Every adapter returns a result dict and never raises: a failed provider shows
up with a fallback summary, confidence 0 and ``error`` set, so the comparison
page can still render it next to the others.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor

import config
import venice
from errors import AnalysisError
from imaging import to_small_jpeg
from nutrition import demo_summary, fallback_summary
from providers import (
    GEMINI_FLASH_CONFIG,
    GROK_41_CONFIG,
    MINIMAX_M21_CONFIG,
    VENICE_CONFIG,
    analyze_nutrition_with,
    identify_with,
    is_configured,
)

log = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 85


def _model_result(cfg, summary, started, error=None):
    if error:
        confidence = 0
    else:
        confidence = summary.get("confidence") or DEFAULT_CONFIDENCE
    return {
        "model_name": cfg["name"],
        "display_name": cfg["display_name"],
        "nutrition_summary": summary,
        "analysis_time": round(time.perf_counter() - started, 2),
        "confidence": confidence,
        "error": error,
    }


def _failed(cfg, started, e):
    if isinstance(e, AnalysisError):
        log.error("%s analysis failed: %s", cfg["display_name"], e)
    else:
        log.exception("%s analysis failed", cfg["display_name"])
    return _model_result(cfg, fallback_summary(e), started, error=str(e))


def analyze_with_venice(image, options=None):
    options = options or {}
    started = time.perf_counter()
    log.info("Starting Venice AI analysis")
    try:
        summary = venice.analyze_image(
            image=image,
            hint=options.get("hint"),
            language=options.get("language", "english"),
            mode=options.get("mode", "two_stage"),
            text_model=options.get("text_model"),
        )
    except Exception as e:
        return _failed(VENICE_CONFIG, started, e)
    result = _model_result(VENICE_CONFIG, summary, started)
    log.info("Venice AI analysis completed in %.2fs", result["analysis_time"])
    return result


def _analyze_with_provider(cfg, image, options=None):
    options = options or {}
    started = time.perf_counter()
    try:
        if config.DEMO_MODE:
            summary = demo_summary(image["jpeg_bytes"])
        else:
            identification = identify_with(cfg, image["base64"])
            summary = analyze_nutrition_with(cfg, identification, options.get("language", "english"))
    except Exception as e:
        return _failed(cfg, started, e)
    return _model_result(cfg, summary, started)


def analyze_with_gemini(image, options=None):
    return _analyze_with_provider(GEMINI_FLASH_CONFIG, image, options)


def analyze_with_minimax(image, options=None):
    return _analyze_with_provider(MINIMAX_M21_CONFIG, image, options)


def analyze_with_grok(image, options=None):
    return _analyze_with_provider(GROK_41_CONFIG, image, options)


# registry order is the display order
ADAPTERS = [
    (VENICE_CONFIG, analyze_with_venice, ("venice",)),
    (GEMINI_FLASH_CONFIG, analyze_with_gemini, ("gemini",)),
    (MINIMAX_M21_CONFIG, analyze_with_minimax, ("minimax",)),
    (GROK_41_CONFIG, analyze_with_grok, ("grok",)),
]


def available_models():
    return [
        {
            "name": cfg["name"],
            "display_name": cfg["display_name"],
            "configured": cfg is VENICE_CONFIG or is_configured(cfg) or config.DEMO_MODE,
        }
        for cfg, _, _ in ADAPTERS
    ]


def _lookup(name):
    key = (name or "").strip().lower()
    for cfg, adapter, aliases in ADAPTERS:
        if key == cfg["name"] or key in aliases:
            return cfg, adapter
    return None


def _run(adapters, source, options, image=None):
    if image is None:
        image = to_small_jpeg(source)
    if not adapters:
        return []
    with ThreadPoolExecutor(max_workers=len(adapters)) as pool:
        futures = [pool.submit(adapter, image, options) for _, adapter in adapters]
        results = [f.result() for f in futures]
    for result in results:
        if result["error"]:
            log.error("Model %s failed: %s", result["model_name"], result["error"])
    ok = sum(1 for r in results if not r["error"])
    log.info("Completed %d of %d analyses", ok, len(results))
    return results


def run_all_models(source=None, options=None, image=None):
    adapters = [
        (cfg, adapter) for cfg, adapter, _ in ADAPTERS
        if cfg is VENICE_CONFIG or is_configured(cfg) or config.DEMO_MODE
    ]
    log.info("Starting parallel analysis with %s", ", ".join(cfg["display_name"] for cfg, _ in adapters))
    return _run(adapters, source, options, image)


def run_selected_models(source=None, model_names=None, options=None, image=None):
    log.info("Running selected models: %s", ", ".join(model_names or []))
    adapters = []
    for name in model_names or []:
        found = _lookup(name)
        if found is None:
            log.warning("Unknown model: %s", name)
            continue
        if found not in adapters:
            adapters.append(found)
    if not adapters:
        log.warning("No valid models selected, defaulting to Venice")
        adapters.append((VENICE_CONFIG, analyze_with_venice))
    return _run(adapters, source, options, image)

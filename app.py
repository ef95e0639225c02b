# Food Calorie Counter: photo -> hosted vision/text models -> nutrition breakdown
# Features:
# - Venice two-stage pipeline (vision description -> schema-constrained nutrition JSON), single-stage option
# - English / French output, choice of Venice text model (fast or reasoning)
# - Side-by-side comparison across Venice, Gemini, MiniMax and Grok
# - Save a chosen result, history, CSV export, JSON API, Venice passthrough proxy

import os, io, json, csv, logging
from datetime import datetime

from flask import Flask, render_template, request, redirect, url_for, flash, send_from_directory, jsonify, make_response
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from werkzeug.utils import secure_filename

import config
import venice
import providers
from comparison import available_models, run_all_models, run_selected_models
from errors import AnalysisError, ImageError, NutritionParseError
from imaging import to_small_jpeg
from nutrition import MICRONUTRIENT_KEYS, normalize_summary, pretty_key

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("app")

app = Flask(__name__)
app.config.update(
    SECRET_KEY=config.SECRET_KEY,
    SQLALCHEMY_DATABASE_URI=config.DATABASE_URL,
    SQLALCHEMY_TRACK_MODIFICATIONS=False,
    UPLOAD_FOLDER=os.path.join(app.root_path, config.UPLOAD_FOLDER),
    MAX_CONTENT_LENGTH=config.MAX_CONTENT_LENGTH,
)
db = SQLAlchemy(app)
CORS(app, resources={r"/api/*": {"origins": "*"}})

# ---------------- Models ----------------
class SavedResult(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    model_name = db.Column(db.String(64), nullable=False)
    display_name = db.Column(db.String(120), nullable=True)
    title = db.Column(db.String(255), nullable=True)
    serving_description = db.Column(db.String(255), nullable=True)
    total_calories = db.Column(db.Float, nullable=True)
    protein_g = db.Column(db.Float, nullable=True)
    carbs_g = db.Column(db.Float, nullable=True)
    fat_g = db.Column(db.Float, nullable=True)
    confidence = db.Column(db.Float, nullable=True)
    analysis_time = db.Column(db.Float, nullable=True)
    language = db.Column(db.String(16), nullable=True)   # english/french
    mode = db.Column(db.String(16), nullable=True)       # two_stage/single_stage
    filename = db.Column(db.String(255), nullable=True)
    summary_json = db.Column(db.Text, nullable=False)
    saved_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def summary(self):
        try:
            return json.loads(self.summary_json or "{}")
        except ValueError:
            return {}

    def to_dict(self):
        return {
            "id": self.id,
            "modelName": self.model_name,
            "displayName": self.display_name,
            "savedAt": self.saved_at.isoformat() if self.saved_at else None,
            "analysisTime": self.analysis_time,
            "language": self.language,
            "mode": self.mode,
            "filename": self.filename,
            "nutritionSummary": self.summary,
        }


with app.app_context():
    db.create_all()


@app.context_processor
def inject_globals():
    return {"APP_NAME": config.APP_NAME, "DEMO_MODE": config.DEMO_MODE}


app.jinja_env.filters["pretty_key"] = pretty_key

# ---------------- Helpers ----------------
def _allowed(filename): return "." in filename and filename.rsplit(".", 1)[1].lower() in config.ALLOWED_EXT

def _wants_json():
    return request.path.startswith("/api/")

def _analysis_options(form):
    language = form.get("language") or "english"
    mode = form.get("mode") or "two_stage"
    return {
        "hint": (form.get("hint") or "").strip()[:200] or None,
        "language": language if language in config.LANGUAGES else "english",
        "mode": mode if mode in config.MODES else "two_stage",
        "text_model": form.get("text_model") or None,
    }

def _read_upload():
    """Validated upload -> processed image dict; raises ImageError."""
    f = request.files.get("photo")
    if not f or not f.filename:
        raise ImageError("Upload an image (jpg, png, webp...)")
    if not _allowed(f.filename):
        raise ImageError("Unsupported file type. Upload an image (jpg, png, webp...)")
    image = to_small_jpeg(f)
    image["original_name"] = f.filename
    return image

def _float_or_none(v):
    try:
        return float(v)
    except (TypeError, ValueError):
        return None

def _store_upload(image):
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)
    base = secure_filename(image.get("original_name", "meal").rsplit(".", 1)[0]) or "meal"
    filename = datetime.utcnow().strftime("%Y%m%d_%H%M%S_%f_") + base + ".jpg"
    with open(os.path.join(app.config["UPLOAD_FOLDER"], filename), "wb") as out:
        out.write(image["jpeg_bytes"])
    return filename

def _pipeline_label(options):
    if options["mode"] == "single_stage":
        return f"Single-stage · {config.VENICE_VISION_MODEL}"
    option = venice.text_model_option(options["text_model"] or config.VENICE_TEXT_MODEL)
    text_label = option["label"] if option else (options["text_model"] or config.VENICE_TEXT_MODEL)
    return f"Two-stage · {config.VENICE_VISION_MODEL} → {text_label}"

def save_result(model_name, summary, display_name=None, filename=None, language=None, mode=None, analysis_time=None):
    summary = normalize_summary(summary)
    macros = summary["macros"]
    entry = SavedResult(
        model_name=model_name,
        display_name=display_name or model_name,
        title=summary["title"],
        serving_description=summary["servingDescription"],
        total_calories=summary["totalCalories"],
        protein_g=macros["protein"]["grams"],
        carbs_g=macros["carbs"]["grams"],
        fat_g=macros["fat"]["grams"],
        confidence=summary["confidence"],
        analysis_time=analysis_time,
        language=language,
        mode=mode,
        filename=secure_filename(filename) if filename else None,
        summary_json=json.dumps(summary, ensure_ascii=False),
    )
    db.session.add(entry); db.session.commit()
    log.info("Saved %s result #%s (%s, %s kcal)", model_name, entry.id, entry.title, entry.total_calories)
    return entry

# ---------------- Error handlers ----------------
@app.errorhandler(413)
def too_large(e):
    message = f"Image is too large (max {config.MAX_CONTENT_LENGTH // (1024 * 1024)} MB)."
    if _wants_json():
        return jsonify({"error": message}), 413
    flash(message, "warning")
    return redirect(url_for("index"))

@app.errorhandler(AnalysisError)
def analysis_failed(e):
    status = 400 if isinstance(e, ImageError) else 502
    log.warning("Analysis error on %s: %s", request.path, e)
    if _wants_json():
        return jsonify({"error": str(e), "type": type(e).__name__}), status
    flash(f"Image analysis failed: {e}", "danger")
    return redirect(url_for("index"))

# ---------------- Routes ----------------
@app.route("/")
def index():
    return render_template(
        "index.html",
        text_models=config.VENICE_TEXT_MODELS,
        default_text_model=config.VENICE_TEXT_MODEL,
        languages=config.LANGUAGES,
        models=available_models(),
        vision_model=config.VENICE_VISION_MODEL,
    )

@app.route("/analyze", methods=["POST"])
def analyze():
    options = _analysis_options(request.form)
    try:
        image = _read_upload()
    except ImageError as e:
        flash(str(e), "warning")
        return redirect(url_for("index"))
    try:
        summary = venice.analyze_image(image=image, **options)
    except AnalysisError as e:
        flash(f"Image analysis failed: {e}", "danger")
        return redirect(url_for("index"))
    filename = _store_upload(image)
    return render_template(
        "result.html",
        summary=summary,
        filename=filename,
        options=options,
        pipeline=_pipeline_label(options),
        micronutrient_keys=MICRONUTRIENT_KEYS,
        model_name=providers.VENICE_CONFIG["name"],
        display_name=providers.VENICE_CONFIG["display_name"],
    )

@app.route("/compare", methods=["POST"])
def compare():
    options = _analysis_options(request.form)
    try:
        image = _read_upload()
    except ImageError as e:
        flash(str(e), "warning")
        return redirect(url_for("index"))
    selected = request.form.getlist("models")
    if selected:
        results = run_selected_models(model_names=selected, options=options, image=image)
    else:
        results = run_all_models(options=options, image=image)
    filename = _store_upload(image)
    return render_template(
        "compare.html",
        results=results,
        filename=filename,
        options=options,
        micronutrient_keys=MICRONUTRIENT_KEYS,
    )

@app.route("/results", methods=["POST"])
def results_save():
    model_name = (request.form.get("model_name") or "").strip()
    try:
        summary = json.loads(request.form.get("summary_json") or "")
        entry = save_result(
            model_name or "venice",
            summary,
            display_name=request.form.get("display_name"),
            filename=request.form.get("filename"),
            language=request.form.get("language"),
            mode=request.form.get("mode"),
            analysis_time=_float_or_none(request.form.get("analysis_time")),
        )
    except (ValueError, NutritionParseError) as e:
        flash(f"Could not save the result: {e}", "danger")
        return redirect(url_for("index"))
    flash("Result saved.", "success")
    return redirect(url_for("history_detail", result_id=entry.id))

@app.route("/history")
def history():
    entries = db.session.query(SavedResult).order_by(SavedResult.saved_at.desc()).all()
    return render_template("history.html", entries=entries)

@app.route("/history/<int:result_id>")
def history_detail(result_id):
    entry = db.session.get(SavedResult, result_id)
    if not entry:
        return "Not found", 404
    return render_template("history_detail.html", entry=entry, summary=entry.summary, micronutrient_keys=MICRONUTRIENT_KEYS)

@app.route("/history/<int:result_id>/delete", methods=["POST"])
def history_delete(result_id):
    entry = db.session.get(SavedResult, result_id)
    if not entry:
        return "Not found", 404
    if entry.filename:
        path = os.path.join(app.config["UPLOAD_FOLDER"], entry.filename)
        if os.path.exists(path):
            os.remove(path)
    db.session.delete(entry); db.session.commit()
    flash("Result deleted.", "info")
    return redirect(url_for("history"))

# Export CSV
@app.route("/export.csv")
def export_csv():
    out = io.StringIO()
    cw = csv.writer(out)
    cw.writerow(["saved_at", "model", "title", "serving", "kcal", "protein_g", "carbs_g", "fat_g", "confidence", "filename"])
    for e in db.session.query(SavedResult).order_by(SavedResult.saved_at.asc()).all():
        cw.writerow([
            e.saved_at.isoformat() if e.saved_at else "", e.model_name, e.title or "", e.serving_description or "",
            e.total_calories or 0, e.protein_g or 0, e.carbs_g or 0, e.fat_g or 0, e.confidence or 0, e.filename or "",
        ])
    resp = make_response(out.getvalue())
    resp.headers["Content-Type"] = "text/csv; charset=utf-8"
    resp.headers["Content-Disposition"] = "attachment; filename=nutrition_export.csv"
    return resp

@app.route("/uploads/<path:filename>")
def uploaded_file(filename):
    return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

# ---------------- JSON API ----------------
@app.route("/api/models")
def api_models():
    return jsonify({
        "models": available_models(),
        "textModels": config.VENICE_TEXT_MODELS,
        "visionModel": config.VENICE_VISION_MODEL,
        "languages": list(config.LANGUAGES),
        "modes": list(config.MODES),
    })

@app.route("/api/analyze", methods=["POST"])
def api_analyze():
    options = _analysis_options(request.form)
    image = _read_upload()
    summary = venice.analyze_image(image=image, **options)
    return jsonify({"nutritionSummary": summary, "pipeline": _pipeline_label(options)})

@app.route("/api/compare", methods=["POST"])
def api_compare():
    options = _analysis_options(request.form)
    image = _read_upload()
    selected = request.form.getlist("models")
    if selected:
        results = run_selected_models(model_names=selected, options=options, image=image)
    else:
        results = run_all_models(options=options, image=image)
    return jsonify({"results": results})

@app.route("/api/results", methods=["GET", "POST"])
def api_results():
    if request.method == "GET":
        entries = db.session.query(SavedResult).order_by(SavedResult.saved_at.desc()).limit(100).all()
        return jsonify({"results": [e.to_dict() for e in entries]})
    payload = request.get_json(silent=True) or {}
    summary = payload.get("nutritionSummary")
    if not isinstance(summary, dict):
        return jsonify({"error": "nutritionSummary object is required"}), 400
    entry = save_result(
        payload.get("modelName") or "venice",
        summary,
        display_name=payload.get("displayName"),
        language=payload.get("language"),
        mode=payload.get("mode"),
        analysis_time=_float_or_none(payload.get("analysisTime")),
    )
    return jsonify(entry.to_dict()), 201

@app.route("/api/venice", methods=["POST"])
def api_venice_proxy():
    status, content_type, body = providers.proxy_venice(request.get_data())
    resp = make_response(body, status)
    resp.headers["Content-Type"] = content_type
    return resp

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5556)

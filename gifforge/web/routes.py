"""Web UI routes for GifForge."""

import io
import json
import logging
import queue
import threading
import uuid
from concurrent.futures import CancelledError
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    render_template,
    request,
    send_file,
)

from gifforge import ffutil
from gifforge.errors import TranscodeCancelled, TranscodeFailure, UnsupportedSourceError
from gifforge.gateway import GifMetadata, download_name
from gifforge.manifest import EncodingProfile
from gifforge.models import TimeRange, VideoSource, duration_known
from gifforge.timeline import TimeRangeSelector

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__, template_folder="templates", static_folder="static")

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}
_jobs_lock = threading.Lock()


def _timeline_actions(sel: TimeRangeSelector, body: dict) -> None:
    action = body.get("action")
    if action == "seek":
        sel.seek(float(body["time"]))
    elif action == "press":
        sel.begin_press(int(body.get("pointer_id", 0)), float(body["x"]), body.get("handle"))
    elif action == "move":
        pid = body.get("pointer_id")
        sel.move_press(float(body["x"]), None if pid is None else int(pid))
    elif action == "release":
        pid = body.get("pointer_id")
        sel.end_press(None if pid is None else int(pid))
    elif action == "cancel":
        pid = body.get("pointer_id")
        sel.cancel_press(None if pid is None else int(pid))
    elif action == "zoom_in":
        sel.zoom_in(float(body.get("focal", 0.5)))
    elif action == "zoom_out":
        sel.zoom_out(float(body.get("focal", 0.5)))
    elif action == "pan":
        sel.pan(body.get("direction", 0))
    elif action == "focus":
        sel.focus_on_selection()
    elif action == "select":
        sel.set_selection(float(body["start"]), float(body["end"]))
    elif action == "quick":
        sel.quick_select(float(body["span"]))
    elif action == "reset":
        sel.reset_selection()
    elif action == "track":
        sel.set_track(float(body.get("left", 0.0)), float(body["width"]))
    else:
        raise ValueError(f"Unknown timeline action: {action!r}")


def _requested_selection(job: dict, body: dict) -> TimeRange:
    if "start" in body and "end" in body:
        return TimeRange(start=float(body["start"]), end=float(body["end"]))
    return job["selector"].selection


@bp.route("/")
def index():
    return render_template("index.html")


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    ext = Path(f.filename).suffix or ".mp4"
    source = VideoSource.from_bytes(f.read(), job_dir, suffix=ext)

    try:
        meta = ffutil.probe(source.path)
    except UnsupportedSourceError as e:
        logger.warning(f"Rejected upload {f.filename}: {e}")
        return jsonify({"error": str(e)}), 415

    selector = TimeRangeSelector(settings=current_app.config["SETTINGS"])
    selector.on_metadata_loaded(meta.duration, meta.width, meta.height)

    _jobs[job_id] = {
        "dir": job_dir,
        "source": source.with_metadata(meta),
        "filename": f.filename,
        "selector": selector,
        "status": "uploaded",
    }

    return jsonify({
        "job_id": job_id,
        "filename": f.filename,
        "metadata": {
            "duration": meta.duration if duration_known(meta.duration) else None,
            "width": meta.width,
            "height": meta.height,
        },
        "timeline": selector.snapshot(),
    })


@bp.route("/api/jobs/<job_id>/timeline", methods=["GET", "POST"])
def timeline(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    selector = _jobs[job_id]["selector"]
    if request.method == "POST":
        try:
            _timeline_actions(selector, request.get_json() or {})
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"error": f"Bad timeline request: {e}"}), 400
    return jsonify(selector.snapshot())


@bp.route("/api/jobs/<job_id>/estimate", methods=["POST"])
def estimate_size(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    body = request.get_json() or {}
    try:
        profile = EncodingProfile.from_dict(body.get("profile", {}))
        selection = _requested_selection(job, body)
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    engine = current_app.config["ENGINE"]
    est = engine.estimate(job["source"], selection, profile)
    budget = engine.settings.budget_bytes
    return jsonify({
        "predicted_bytes": est.predicted_bytes,
        "label": est.label(),
        "budget_bytes": budget,
        "within_budget": est.predicted_bytes <= budget,
    })


@bp.route("/api/jobs/<job_id>/process", methods=["POST"])
def start_process(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    body = request.get_json() or {}
    try:
        profile = EncodingProfile.from_dict(body.get("profile", {}))
        selection = _requested_selection(job, body)
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    progress_queue: queue.Queue = queue.Queue()
    with _jobs_lock:
        if job["status"] not in ("uploaded", "done", "error", "cancelled"):
            return jsonify({"error": f"Job is already {job['status']}"}), 409
        job["status"] = "processing"
        job["progress_queue"] = progress_queue
        job["error"] = None
        job.pop("gif", None)

    def on_progress(frac: float) -> None:
        progress_queue.put({"stage": "encoding", "progress": round(frac, 3)})

    def on_done(handle) -> None:
        try:
            result = handle.result()
            job["gif"] = result.data
            job["result"] = {
                "size": result.size,
                "content_type": result.content_type,
                "width": result.width,
                "height": result.height,
                "fps": result.fps,
                "duration": result.duration,
                "attempts": result.attempts,
                "within_budget": result.budget.within_budget,
                "warnings": result.warnings,
                "download_name": download_name(job["filename"], result.duration),
            }
            job["status"] = "done"
        except (TranscodeCancelled, CancelledError):
            logger.info(f"Job {job_id} cancelled")
            job["status"] = "cancelled"
        except TranscodeFailure as e:
            job["status"] = "error"
            stderr = e.stderr or ""
            job["error"] = f"ffmpeg failed: {stderr[-500:]}" if stderr else str(e)
        except Exception as e:
            logger.exception(f"Job {job_id} failed")
            job["status"] = "error"
            job["error"] = str(e)
        finally:
            progress_queue.put(None)  # sentinel

    engine = current_app.config["ENGINE"]
    job["handle"] = engine.submit(job["source"], selection, profile, on_progress=on_progress)
    job["handle"].add_done_callback(on_done)
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/cancel", methods=["POST"])
def cancel_process(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    handle = _jobs[job_id].get("handle")
    if handle is None or not handle.cancel():
        return jsonify({"error": "Nothing to cancel"}), 409
    return jsonify({"status": "cancelling"})


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _final_event(job: dict) -> dict:
    if job["status"] == "error":
        return {"error": job["error"]}
    if job["status"] == "cancelled":
        return {"stage": "cancelled"}
    return {"stage": "complete", "progress": 1.0, "result": job.get("result")}


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    updates = job.get("progress_queue")
    if updates is None:
        return jsonify({"error": "No processing in progress"}), 409

    def events():
        while True:
            try:
                msg = updates.get(timeout=120)
            except queue.Empty:
                yield _sse({"error": "timeout"})
                return
            if msg is None:
                yield _sse(_final_event(job))
                return
            yield _sse(msg)

    return Response(events(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    return send_file(
        io.BytesIO(job["gif"]),
        mimetype="image/gif",
        as_attachment=False,
        download_name=job["result"]["download_name"],
    )


@bp.route("/api/jobs/<job_id>/save", methods=["POST"])
def save_result(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    result = job["result"]
    gateway = current_app.config["GATEWAY"]
    ref = gateway.store(
        job["gif"],
        GifMetadata(
            original_name=job["filename"],
            duration=result["duration"],
            width=result["width"],
            height=result["height"],
        ),
    )
    return jsonify({"reference": ref}), 201


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    resp = {"status": job["status"], "filename": job.get("filename")}
    if job["status"] == "processing" and job.get("handle") is not None:
        resp["progress"] = round(job["handle"].progress(), 3)
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)

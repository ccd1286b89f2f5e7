"""Flask application factory for the GifForge web UI."""

import tempfile
from pathlib import Path

from flask import Flask, jsonify

from gifforge.config import Settings
from gifforge.engine import TranscodeEngine
from gifforge.gateway import LocalGateway, UploadGateway


def create_app(
    work_dir: Path | None = None,
    settings: Settings | None = None,
    engine: TranscodeEngine | None = None,
    gateway: UploadGateway | None = None,
) -> Flask:
    app = Flask(__name__)
    settings = settings or Settings.from_env()
    work_dir = Path(work_dir or settings.work_dir or tempfile.mkdtemp(prefix="gifforge_"))
    app.config["WORK_DIR"] = work_dir
    app.config["MAX_CONTENT_LENGTH"] = 2 * 1024 * 1024 * 1024  # 2 GB
    app.config["SETTINGS"] = settings
    app.config["ENGINE"] = engine or TranscodeEngine(settings=settings)
    app.config["GATEWAY"] = gateway or LocalGateway(settings.store_dir or work_dir / "store")

    from gifforge.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"error": "File too large"}), 413

    return app

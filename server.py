#!/usr/bin/env python3
"""PluginSmith - HTTP API for generating and building Minecraft plugins."""

import asyncio
import os
import threading
import time
from datetime import datetime, timezone

from flask import Flask, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from config.defaults import DEFAULTS
from core.orchestrator import Orchestrator
from utils.auth import require_token
from utils.folder_naming import is_valid_build_id, new_build_id
from utils.logger import get_logger

logger = get_logger("server")

app = Flask(__name__)
orchestrator = Orchestrator()


def _envelope(success, message, code=200, **data):
    """JSON response with the success flag, message and timestamp every route returns."""
    body = {
        "success": success,
        "status": "success" if success else ("fail" if code < 500 else "error"),
        "message": message,
        **data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return jsonify(body), code


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _flag(data, name):
    value = data.get(name, request.args.get(name))
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes")
    return value is True


def _known_build(build_id):
    """Return an error response for an unusable build id, or None."""
    if not is_valid_build_id(build_id):
        return _envelope(False, f"Invalid build id: {build_id}", 400)
    if not orchestrator.store.exists(build_id):
        return _envelope(False, f"Build {build_id} not found", 404)
    return None


@app.before_request
def _start_timer():
    request.environ["pluginsmith.started"] = time.monotonic()


@app.after_request
def _log_request(response):
    started = request.environ.get("pluginsmith.started")
    elapsed = (time.monotonic() - started) * 1000 if started else 0.0
    logger.info("%s %s %s %.0fms", request.method, request.path, response.status_code, elapsed)
    return response


@app.errorhandler(OSError)
def _filesystem_error(e):
    logger.error("Filesystem error: %s", e)
    return _envelope(False, "Filesystem error", 500, error=str(e))


@app.errorhandler(Exception)
def _unexpected_error(e):
    if isinstance(e, HTTPException):
        return _envelope(False, e.description, e.code)
    logger.exception("Unhandled error on %s", request.path)
    return _envelope(False, "Internal server error", 500, error=str(e))


@app.route("/")
def index():
    return jsonify({"message": "Welcome to the PluginSmith API"})


@app.route("/api/health")
def api_health():
    return jsonify({"status": "ok"})


@app.route("/api/create", methods=["POST"])
@require_token
async def api_create():
    data = _json_body()
    prompt = data.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        return _envelope(False, "Request must contain a prompt field", 400)
    prompt = prompt.strip()

    build_id = data.get("buildId") or new_build_id()
    if not is_valid_build_id(build_id):
        return _envelope(False, f"Invalid build id: {build_id}", 400)
    compile_requested = _flag(data, "compile")

    if _flag(data, "async"):
        orchestrator.store.create(build_id, prompt)
        orchestrator.store.mark_pending(build_id)
        job = orchestrator.create_in_background(prompt, compile_requested, build_id)
        threading.Thread(target=asyncio.run, args=(job,), daemon=True).start()
        return _envelope(True, "Plugin generation started", 202,
                         buildId=build_id,
                         status="pending",
                         statusCheckUrl=f"/api/build/status/{build_id}")

    result = await orchestrator.create(prompt, compile=compile_requested, build_id=build_id)

    payload = {
        "data": result.files,
        "files": list(result.files),
        "pluginName": result.plugin_name,
        "buildId": result.build_id,
        "cached": result.cached,
        "processingTime": f"{result.processing_time:.2f}s",
    }
    if result.build is None:
        message = "Minecraft plugin generated successfully"
        if result.cached:
            message += " (cached)"
        return _envelope(True, message, **payload)

    build = result.build
    payload.update({
        "jarPath": build.jar_path,
        "buildOutput": build.build_output,
        "degraded": build.degraded,
        "attemptsUsed": build.attempts_used,
        "downloadUrl": f"/api/build/download/{build.build_id}" if build.success else None,
    })
    if not build.success:
        message = "Plugin generated but compilation failed"
    elif build.degraded:
        message = "Plugin generated and compiled without shading; dependencies may be missing"
    else:
        message = "Plugin generated and compiled successfully"
    return _envelope(build.success, message, **payload)


@app.route("/api/fix", methods=["POST"])
@require_token
async def api_fix():
    data = _json_body()
    build_errors = data.get("buildErrors")
    files = data.get("files")
    if not isinstance(build_errors, str) or not build_errors.strip() or not isinstance(files, dict) or not files:
        return _envelope(False, "Request must contain buildErrors and files fields", 400)
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in files.items()):
        return _envelope(False, "files must map paths to file contents", 400)

    fixed, cached = await orchestrator.fix(build_errors, files)

    if cached:
        message = "Files fixed successfully (cached)"
    elif fixed:
        message = "Files fixed successfully"
    else:
        message = "No fixes could be produced for these errors"
    return _envelope(True, message, data=fixed, changedFiles=len(fixed), cached=cached)


@app.route("/api/build/status/<build_id>")
@require_token
def api_build_status(build_id):
    error = _known_build(build_id)
    if error:
        return error
    status = orchestrator.store.status(build_id)
    if _flag({}, "includeFiles"):
        status["files"] = orchestrator.store.walk_files(build_id)
    return _envelope(True, f"Build status retrieved for {build_id}", **status)


@app.route("/api/build/download/<build_id>")
@require_token
def api_build_download(build_id):
    error = _known_build(build_id)
    if error:
        return error
    jar = orchestrator.store.find_jar(build_id)
    if not jar:
        return _envelope(False, f"No JAR file found for build {build_id}", 404)

    name = orchestrator.store.plugin_name(build_id, default="")
    response = send_file(
        jar,
        mimetype="application/java-archive",
        as_attachment=True,
        download_name=f"{name.lower()}.jar" if name else os.path.basename(jar),
    )
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


@app.route("/api/plugins")
@require_token
def api_plugins():
    plugins = orchestrator.store.list_plugins()
    return _envelope(True, "Plugins retrieved successfully", plugins=plugins, count=len(plugins))


@app.route("/api/plugins/<build_id>")
@require_token
def api_plugin_details(build_id):
    error = _known_build(build_id)
    if error:
        return error
    return _envelope(True, f"Plugin {build_id} details retrieved successfully",
                     plugin=orchestrator.store.plugin_details(build_id))


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    logger.info("PluginSmith running at http://localhost:%d (plugins in %s)",
                port, DEFAULTS["plugins_dir"])
    app.run(debug=False, port=port)

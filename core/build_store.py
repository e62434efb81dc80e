"""On-disk layout of builds: one directory per build id.

<plugins_dir>/<build_id>/
    prompt.txt            original request, when there was one
    <source tree>
    target/               Maven output
    build_result.json     status, success flag and artifact path
"""

import json
import os
from datetime import datetime, timezone

from config.defaults import DEFAULTS
from core.compiler import TARGET_DIR, find_jar
from utils.folder_naming import build_timestamp, get_build_dir
from utils.logger import get_logger

logger = get_logger("build_store")

RESULT_FILE = "build_result.json"
PROMPT_FILE = "prompt.txt"
MANIFEST_LOCATIONS = (
    os.path.join("src", "main", "resources", "plugin.yml"),
    "plugin.yml",
)
TEXT_EXTENSIONS = {".java", ".yml", ".yaml", ".xml", ".txt", ".md", ".properties", ".json"}
MAX_WALK_DEPTH = 32


def _iso(ts):
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class BuildStore:
    """Reads and writes build directories under the plugins root."""

    def __init__(self, base_dir=None):
        self.base_dir = os.path.realpath(base_dir or DEFAULTS["plugins_dir"])

    def build_dir(self, build_id):
        return get_build_dir(build_id, base=self.base_dir)

    def exists(self, build_id):
        return os.path.isdir(self.build_dir(build_id))

    def create(self, build_id, prompt=None):
        build_dir = self.build_dir(build_id)
        os.makedirs(build_dir, exist_ok=True)
        if prompt:
            with open(os.path.join(build_dir, PROMPT_FILE), "w", encoding="utf-8") as fp:
                fp.write(prompt)
        return build_dir

    def write_files(self, build_id, files):
        """Write a FileTree into the build directory. Returns the written paths."""
        build_dir = self.create(build_id)
        written = []
        for path, content in files.items():
            full_path = os.path.join(build_dir, path)
            resolved = os.path.realpath(full_path)
            if not resolved.startswith(build_dir + os.sep):
                raise ValueError(f"Path escapes build directory: {path}")
            os.makedirs(os.path.dirname(resolved), exist_ok=True)
            with open(resolved, "w", encoding="utf-8") as fp:
                fp.write(content)
            written.append(path)
        return written

    def write_result(self, build_id, result):
        """Persist a result dict (see BuildResult.to_dict) as build_result.json."""
        build_dir = self.create(build_id)
        with open(os.path.join(build_dir, RESULT_FILE), "w", encoding="utf-8") as fp:
            json.dump(result, fp, indent=2)

    def mark_pending(self, build_id, plugin_name=None):
        self.write_result(build_id, {"status": "pending", "success": False,
                                     "jarPath": None, "pluginName": plugin_name})

    def read_result(self, build_id):
        path = os.path.join(self.build_dir(build_id), RESULT_FILE)
        if not os.path.isfile(path):
            return None
        try:
            with open(path, encoding="utf-8") as fp:
                data = json.load(fp)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable %s for %s: %s", RESULT_FILE, build_id, e)
            return None
        return data if isinstance(data, dict) else None

    def find_jar(self, build_id):
        result = self.read_result(build_id) or {}
        return find_jar(self.build_dir(build_id), allow_original=bool(result.get("degraded")))

    def plugin_name(self, build_id, default="Unknown"):
        build_dir = self.build_dir(build_id)
        for location in MANIFEST_LOCATIONS:
            path = os.path.join(build_dir, location)
            if not os.path.isfile(path):
                continue
            try:
                with open(path, encoding="utf-8") as fp:
                    for line in fp:
                        if line.startswith("name:"):
                            name = line.split(":", 1)[1].strip().strip("'\"")
                            if name:
                                return name
            except OSError as e:
                logger.warning("Could not read plugin.yml for %s: %s", build_id, e)
        return default

    def status(self, build_id):
        """pending | completed | failed, plus the jar file name when there is one."""
        jar = self.find_jar(build_id)
        result = self.read_result(build_id)
        if result is not None:
            state = result.get("status")
            if state not in ("pending", "completed", "failed"):
                state = "completed" if result.get("success") else "failed"
            if state == "pending":
                jar = None
        elif jar:
            state = "completed"
        elif os.path.isdir(os.path.join(self.build_dir(build_id), TARGET_DIR)):
            state = "failed"
        else:
            state = "pending"

        jar_file = os.path.basename(jar) if jar and state == "completed" else None
        return {
            "buildId": build_id,
            "status": state,
            "jarFile": jar_file,
            "pluginName": self.plugin_name(build_id),
            "degraded": bool(result.get("degraded")) if result else False,
            "downloadUrl": f"/api/build/download/{build_id}" if jar_file else None,
        }

    def walk_files(self, build_id):
        """Relative paths of every file, skipping target/. Iterative and depth-bounded."""
        build_dir = self.build_dir(build_id)
        found = []
        stack = [(build_dir, 0)]
        while stack:
            directory, depth = stack.pop()
            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError as e:
                logger.warning("Could not list %s: %s", directory, e)
                continue
            for entry in entries:
                if entry.is_symlink():
                    continue
                if entry.is_dir():
                    if entry.name == TARGET_DIR or depth >= MAX_WALK_DEPTH:
                        continue
                    stack.append((entry.path, depth + 1))
                elif entry.is_file():
                    found.append(os.path.relpath(entry.path, build_dir).replace(os.sep, "/"))
        return sorted(found)

    def created_at(self, build_id):
        ts = build_timestamp(build_id)
        if ts is None:
            ts = os.path.getmtime(self.build_dir(build_id))
        return _iso(ts)

    def read_prompt(self, build_id, limit=None):
        path = os.path.join(self.build_dir(build_id), PROMPT_FILE)
        if not os.path.isfile(path):
            return ""
        with open(path, encoding="utf-8") as fp:
            prompt = fp.read()
        if limit is not None and len(prompt) > limit:
            return prompt[:limit] + "..."
        return prompt

    def summary(self, build_id):
        status = self.status(build_id)
        return {
            "id": build_id,
            "buildId": build_id,
            "name": status["pluginName"],
            "status": status["status"],
            "jarFile": status["jarFile"],
            "createdAt": self.created_at(build_id),
            "fileCount": len(self.walk_files(build_id)),
            "prompt": self.read_prompt(build_id, limit=100),
        }

    def list_plugins(self):
        """Summaries of every build, newest first."""
        if not os.path.isdir(self.base_dir):
            return []
        plugins = []
        for entry in os.scandir(self.base_dir):
            if not entry.is_dir():
                continue
            try:
                plugins.append(self.summary(entry.name))
            except ValueError:
                # directory name is not a valid build id
                continue
        plugins.sort(key=lambda p: p["createdAt"], reverse=True)
        return plugins

    def plugin_details(self, build_id):
        """Summary plus the contents of every text file."""
        details = self.summary(build_id)
        files = self.walk_files(build_id)
        build_dir = self.build_dir(build_id)
        contents = {}
        for path in files:
            if os.path.splitext(path)[1].lower() not in TEXT_EXTENSIONS:
                continue
            try:
                with open(os.path.join(build_dir, path), encoding="utf-8") as fp:
                    contents[path] = fp.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Could not read %s: %s", path, e)
                contents[path] = "Error reading file"
        details.update({
            "files": files,
            "fileCount": len(files),
            "fileContents": contents,
            "prompt": self.read_prompt(build_id),
            "downloadUrl": f"/api/build/download/{build_id}" if details["jarFile"] else None,
        })
        return details

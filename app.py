"""Flask application exposing the tag cloud renderer over HTTP."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from flask import Flask, jsonify, render_template, request
from markupsafe import Markup
from werkzeug.utils import secure_filename

from tagcloud_core import (
    PAGE_CSS,
    WeightedLabel,
    build_cloud,
    counts_from_tags,
    load_tags_from_json_path,
    make_rng,
    parse_directive,
    render_items,
)
from tagcloud_jinja import TagCloudExtension

BASE_DIR = Path(__file__).resolve().parent
UPLOAD_DIR = Path(os.environ.get("TAGCLOUD_UPLOAD_DIR", BASE_DIR / "data" / "uploads"))
TAGS_PATH = os.environ.get("TAGCLOUD_TAGS_PATH", "data/tags.json")
TAG_DIR = os.environ.get("TAGCLOUD_TAG_DIR", "/blog/tags")
DEFAULT_DIRECTIVE = "font-size: 80 - 200%, sort: alpha"

logger = logging.getLogger(__name__)

app = Flask(__name__, template_folder="templates")
app.jinja_env.add_extension(TagCloudExtension)
app.jinja_env.globals["page_css"] = Markup(PAGE_CSS)


def resolve_tags_path(path_str: str) -> Path:
    """Locate a JSON tag file inside the project directory."""
    candidate = Path(path_str)
    if not candidate.is_absolute():
        candidate = BASE_DIR / candidate
    candidate = candidate.resolve()
    if BASE_DIR not in candidate.parents:
        raise ValueError("Tag file must stay within the project directory")
    if candidate.suffix.lower() != ".json":
        raise ValueError(f"Tag file must be a .json file: {path_str}")
    if not candidate.exists():
        raise FileNotFoundError(candidate)
    return candidate


def labels_payload(labels: Sequence[WeightedLabel]) -> List[Dict[str, Any]]:
    return [{"name": label.name, "weight": label.weight} for label in labels]


def load_payload_tags(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    tags = payload.get("tags")
    if tags is None:
        json_path = payload.get("jsonPath")
        if not json_path:
            raise ValueError("tags or jsonPath missing")
        tags = load_tags_from_json_path(resolve_tags_path(str(json_path)))
    if not isinstance(tags, Mapping):
        raise ValueError("tags must be an object mapping tag names to items or counts")
    return tags


@app.get("/")
def index() -> str:
    directive = request.args.get("directive", DEFAULT_DIRECTIVE)
    try:
        tags = load_tags_from_json_path(resolve_tags_path(TAGS_PATH))
    except (FileNotFoundError, ValueError) as exc:
        logger.warning("Could not load tags from %s: %s", TAGS_PATH, exc)
        tags = {}
    return render_template(
        "index.html",
        tags=tags,
        tag_dir=TAG_DIR,
        directive=directive,
        style=parse_directive(directive).style,
    )


@app.post("/api/upload")
def upload() -> Any:
    if "file" not in request.files:
        return jsonify({"error": "No file part"}), 400
    file = request.files["file"]
    if not file or file.filename == "":
        return jsonify({"error": "No selected file"}), 400

    filename = secure_filename(file.filename) or f"upload-{int(time.time())}.json"
    timestamp = int(time.time())
    stored_name = f"{timestamp}-{filename}"
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    destination = UPLOAD_DIR / stored_name
    file.save(destination)

    try:
        label_counts = counts_from_tags(load_tags_from_json_path(destination))
    except (TypeError, ValueError) as exc:
        destination.unlink()
        logger.info("Rejected uploaded tag file %s: %s", filename, exc)
        return jsonify({"error": f"Invalid tag file: {exc}"}), 400

    try:
        relative_path = destination.relative_to(BASE_DIR)
    except ValueError:
        relative_path = destination
    return jsonify({
        "jsonPath": str(relative_path),
        "filename": filename,
        "stored": str(destination),
        "tagCount": len(label_counts),
    })


@app.post("/api/render")
def render() -> Any:
    payload = request.get_json(silent=True)
    if not isinstance(payload, Mapping):
        return jsonify({"error": "Expected a JSON object"}), 400

    try:
        tags = load_payload_tags(payload)
        label_counts = counts_from_tags(tags)
        rng = make_rng(payload.get("seed"))
    except FileNotFoundError:
        return jsonify({"error": f"Input file not found: {payload.get('jsonPath')}"}), 404
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400

    directive = str(payload.get("directive") or "")
    tag_dir: Optional[str] = payload.get("tagDir")
    config = parse_directive(directive)
    labels = build_cloud(config, label_counts, rng=rng)
    logger.info("Rendered %d of %d tags for directive %r", len(labels), len(label_counts), directive)

    return jsonify({
        "html": render_items(labels, config=config, base_path=str(tag_dir if tag_dir is not None else TAG_DIR)),
        "config": asdict(config),
        "labels": labels_payload(labels),
    })


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True)

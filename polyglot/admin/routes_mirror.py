"""
Admin API — Library and mirror endpoints.

Blueprint: mirror_bp
Prefix: /api
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..mirror.libraries import list_libraries
from ..models.config import LibraryMirror
from ..services import Services
from ..validation import MirrorBusyError, MirrorOperationError, SyncCancelled

mirror_bp = Blueprint("mirror", __name__)


def _services() -> Services:
    return current_app.config["SERVICES"]


@mirror_bp.route("/libraries", methods=["GET"])
def api_libraries():
    """Host libraries, flagged when they are mirror targets."""
    services = _services()
    libraries = list_libraries(services.host, services.store)
    return jsonify({"libraries": [lib.model_dump(mode="json") for lib in libraries]})


@mirror_bp.route("/mirrors", methods=["GET"])
def api_mirrors():
    """Health view of every configured mirror."""
    report = _services().mirrors.mirror_health()
    return jsonify({"mirrors": [entry.to_dict() for entry in report]})


@mirror_bp.route("/mirrors", methods=["POST"])
def api_create_mirror():
    data = request.get_json(silent=True) or {}
    alternative_id = data.get("alternative_id")
    if not alternative_id or not data.get("source_library_id"):
        return jsonify({"success": False, "error": "alternative_id and source_library_id are required"}), 400

    mirror = LibraryMirror(
        source_library_id=data["source_library_id"],
        target_path=data.get("target_path") or "",
        target_library_name=data.get("target_library_name") or "",
    )
    try:
        created = _services().mirrors.create_mirror(alternative_id, mirror)
    except MirrorOperationError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    return jsonify({"success": True, "mirror": created.model_dump(mode="json")}), 201


@mirror_bp.route("/mirrors/validate", methods=["POST"])
def api_validate_mirror():
    """Validate a prospective mirror without changing anything."""
    data = request.get_json(silent=True) or {}
    valid, message = _services().mirrors.validate_mirror_configuration(
        data.get("source_library_id") or "",
        data.get("target_path"),
    )
    return jsonify({"valid": valid, "message": message})


@mirror_bp.route("/mirrors/<mirror_id>/sync", methods=["POST"])
def api_sync_mirror(mirror_id: str):
    """Synchronize one mirror and return its outcome."""
    service = _services().mirrors
    try:
        outcome = service.sync_mirror(mirror_id)
    except MirrorBusyError as e:
        return jsonify({"success": False, "error": str(e)}), 409
    except MirrorOperationError as e:
        return jsonify({"success": False, "error": str(e)}), 404
    except SyncCancelled as e:
        return jsonify({"success": False, "error": str(e)}), 409

    mirror = service.store.get_mirror(mirror_id)
    return jsonify({
        "success": outcome.ok,
        "error": outcome.error,
        "summary": outcome.summary(),
        "files_mirrored": outcome.files_mirrored,
        "files_failed": outcome.files_failed,
        "mirror": mirror.model_dump(mode="json") if mirror else None,
    })


@mirror_bp.route("/mirrors/<mirror_id>", methods=["DELETE"])
def api_delete_mirror(mirror_id: str):
    delete_files = request.args.get("delete_files", "").lower() in ("1", "true", "yes")
    try:
        _services().mirrors.delete_mirror(mirror_id, delete_files=delete_files)
    except MirrorBusyError as e:
        return jsonify({"success": False, "error": str(e)}), 409
    except MirrorOperationError as e:
        return jsonify({"success": False, "error": str(e)}), 404
    return jsonify({"success": True})


@mirror_bp.route("/cleanup", methods=["POST"])
def api_cleanup():
    """Remove mirrors whose source or target library is gone."""
    result = _services().orphans.cleanup_orphaned_mirrors()
    return jsonify({"success": not result.errors, **result.to_dict()})

from flask import Blueprint, abort, request, send_from_directory

from ..constants import ARTIFACT_CONTENT_TYPE
from ..extensions import clients
from ..services.artifact_store import LocalArtifactStore, build_artifact_store
from ..shared.storage import is_safe_key

bp = Blueprint("artifacts", __name__, url_prefix="/artifacts")


@bp.get("/<key>")
def download(key: str):
    """Serve a locally stored certificate behind a signed, expiring link."""
    store = clients().get("artifact_store", build_artifact_store)
    if not isinstance(store, LocalArtifactStore) or not is_safe_key(key):
        abort(404)
    if not store.verify_token(key, request.args.get("token", "")):
        abort(403, "Link expired or invalid")
    if not store.exists(key):
        abort(404, "Certificate not found")
    return send_from_directory(store.root, key, mimetype=ARTIFACT_CONTENT_TYPE)

"""App-wide error handlers."""

from __future__ import annotations

import logging

from flask import Flask, jsonify, session

from extensions import db
from services.errors import DomainActionError, RequestValidationError

from .base import redirect_back, render_page, wants_json

logger = logging.getLogger(__name__)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(RequestValidationError)
    def validation_failed(err: RequestValidationError):
        if wants_json():
            return jsonify({"message": err.message, "errors": err.errors}), 422
        session["errors"] = err.errors
        return redirect_back()

    @app.errorhandler(DomainActionError)
    def domain_failed(err: DomainActionError):
        db.session.rollback()
        if wants_json():
            return jsonify({"error": "domain_error", "message": err.message}), 409
        return redirect_back("error", err.message)

    @app.errorhandler(403)
    def forbidden(e):
        if wants_json():
            return jsonify({"error": "forbidden"}), 403
        return render_page("errors/403", {"status": 403}, status=403)

    @app.errorhandler(404)
    def not_found(e):
        if wants_json():
            return jsonify({"error": "not_found"}), 404
        return render_page("errors/404", {"status": 404}, status=404)

    @app.errorhandler(500)
    def internal(e):
        """Roll back broken transactions and return the standard 500 view."""
        db.session.rollback()
        original = getattr(e, "original_exception", None) or e
        logger.error(
            "Unhandled error: %s",
            original,
            exc_info=(type(original), original, original.__traceback__),
        )
        if wants_json():
            return jsonify({"error": "server_error"}), 500
        return render_page("errors/500", {"status": 500}, status=500)

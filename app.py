import logging
from datetime import datetime

import click
from flask import Flask, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from routes import health_bp, resources_bp, booking_bp, waitlist_bp, audit_bp
from services.errors import ConflictError, SchedulingError
from utils.auth_context import load_current_user

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(resources_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(waitlist_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(SchedulingError)
    def _scheduling_error(err: SchedulingError):
        if isinstance(err, ConflictError):
            logger.info("Conflict: %s", err.code)
        elif err.http_status >= 500:
            logger.warning("Request failed: %s", err.code)
        return jsonify(err.to_dict()), err.http_status

    @app.errorhandler(Exception)
    def _unexpected_error(err: Exception):
        if isinstance(err, HTTPException):
            return jsonify(error=err.description), err.code
        db.session.rollback()
        logger.exception("Unhandled error")
        return jsonify(error="Internal server error"), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def _parse_cli_date(value, label):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter("use YYYY-MM-DD", param_hint=label)


def register_cli(app):
    from services import cancellation, slot_generator, waitlist
    from services.tx import run_in_transaction
    from utils.audit import log_event

    @app.cli.command("create-tables")
    def create_tables():
        """Create all tables directly (local development without migrations)."""
        db.create_all()
        click.echo("Tables created")

    @app.cli.command("generate-slots")
    @click.argument("resource_id", type=int)
    @click.argument("start_date")
    @click.argument("end_date")
    def generate_slots(resource_id, start_date, end_date):
        """Generate slots for RESOURCE_ID between START_DATE and END_DATE (inclusive)."""
        start = _parse_cli_date(start_date, "start_date")
        end = _parse_cli_date(end_date, "end_date")
        try:
            created = run_in_transaction(slot_generator.generate_slots, resource_id, start, end)
        except SchedulingError as exc:
            raise click.ClickException(exc.message)

        log_event("SLOTS_GENERATE", entity="resource", entity_id=resource_id,
                  metadata={"start_date": start, "end_date": end, "slots_created": created})
        click.echo(f"{created} slots created")

    @app.cli.command("sweep-waitlist")
    def sweep_waitlist():
        """Expire past waitlist entries and promote waiting requesters into open slots."""
        outcome = waitlist.sweep()
        log_event("WAITLIST_SWEEP", metadata=outcome)
        click.echo(f"{outcome['expired']} expired, {outcome['promoted']} promoted")

    @app.cli.command("complete-bookings")
    def complete_bookings():
        """Mark confirmed bookings whose session has ended as completed."""
        done = cancellation.complete_past_bookings()
        log_event("BOOKINGS_COMPLETE", metadata={"completed": done})
        click.echo(f"{done} bookings completed")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)

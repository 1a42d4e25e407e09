import logging

import click
from flask import Flask, request, g, jsonify
from flask_migrate import Migrate
from sqlalchemy import inspect

from config import Config
from models import db
from models.user import User, Role
from routes import health_bp, auth_bp, venues_bp, booking_bp
from security.csrf import require_csrf
from services.errors import BookingError
from services.payments import StubPaymentGateway
from services.reservation import ReservationCoordinator
from services.schedule import daily_slots
from services.sql_store import SqlAvailabilityStore, SqlBookingStore, SqlVenueDirectory
from utils.auth_context import load_current_user
from utils.seed import seed_roles, seed_venues

logger = logging.getLogger(__name__)


def build_reservations(app) -> ReservationCoordinator:
    cfg = app.config
    return ReservationCoordinator(
        venues=SqlVenueDirectory(),
        availability=SqlAvailabilityStore(),
        bookings=SqlBookingStore(prefix=cfg["BOOKING_ID_PREFIX"]),
        payments=StubPaymentGateway(succeed=cfg["PAYMENT_STUB_SUCCEEDS"]),
        schedule=daily_slots(cfg["SLOT_DAY_START_HOUR"], cfg["SLOT_DAY_END_HOUR"]),
        fee_percent=cfg["PLATFORM_FEE_PERCENT"],
        store_timeout=cfg["STORE_TIMEOUT_SECONDS"],
        max_players=cfg.get("MAX_PLAYERS"),
    )


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(venues_bp)
    app.register_blueprint(booking_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Collaborators are wired here and reached through app.extensions
    app.extensions["reservations"] = build_reservations(app)

    with app.app_context():
        if app.config.get("TESTING"):
            db.create_all()
        # before the first `flask db upgrade` there is nothing to seed
        if inspect(db.engine).has_table("roles"):
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    CSRF_EXEMPT_PATHS = {
        "/auth/login",
        "/auth/register",
        "/health",
    }

    @app.before_request
    def _csrf_protect():
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None
            # only cookie-authenticated requests can be forged cross-site
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        if exc.status_code >= 500:
            logger.warning("%s on %s %s: %s", exc.code, request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)

        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("seed-venues")
    def seed_venues_cmd():
        """Insert the demo venues if they are missing."""
        added = seed_venues()
        click.echo(f"Added {added} venue(s)")


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)

import logging

import click
from flask import Flask

from .config import load_config
from .controllers.admin import bp as admin_bp
from .controllers.api import bp as api_bp
from .controllers.auth import bp as auth_bp
from .controllers.owner import bp as owner_bp
from .controllers.renter import bp as renter_bp
from .controllers.views import bp as views_bp
from .models.store import Store
from .utils.constants import PLACEHOLDER
from .utils.decorators import load_current_user
from .utils.filters import fmt_currency, fmt_iso_local, fmt_label


def create_app(overrides: dict | None = None):
    app = Flask(__name__, static_folder="static", template_folder="templates")
    app.config.update(load_config())
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("drively").setLevel(app.config["LOG_LEVEL"])

    Store.instance(app.config["DATA_PATH"])  # load data.pkl or start empty

    app.before_request(load_current_user)
    app.register_blueprint(auth_bp)
    app.register_blueprint(views_bp)
    app.register_blueprint(renter_bp)
    app.register_blueprint(owner_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(api_bp)
    app.jinja_env.filters["fmt_iso_local"] = fmt_iso_local
    app.jinja_env.filters["currency"] = fmt_currency
    app.jinja_env.filters["label"] = fmt_label
    app.jinja_env.globals["placeholder"] = PLACEHOLDER

    _register_commands(app)
    return app


def _register_commands(app: Flask):
    from .services.reminder_service import ReminderService

    @app.cli.command("send-reminders")
    def send_reminders():
        """Log every due reminder and mark it sent."""
        sent = ReminderService.dispatch_due()
        click.echo(f"{sent} reminder(s) sent.")

    @app.cli.command("reset-data")
    @click.confirmation_option(prompt="Delete every profile, car and rental?")
    def reset_data():
        """Clear all stored data."""
        Store.instance().clear()
        click.echo("Store cleared.")

"""Flask application for the online store backend."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .config import AppConfig, load_env
from .db.session import Database
from .routes import orders, products, webhooks
from .services import CatalogService, MercadoPagoService, OrderService, ReconciliationService, RefundService
from .services.mercadopago_service import credential_environment


logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )


def create_app(
    config: Optional[AppConfig] = None,
    *,
    database: Optional[Database] = None,
    gateway=None,
) -> Flask:
    config = config or load_env()
    _configure_logging(config.log_level)
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["STOREFRONT_CONFIG"] = config

    database = database or Database(config.database_url)
    if gateway is None:
        gateway = MercadoPagoService(
            config.gateway_access_token,
            base_url=config.gateway_base_url,
            timeout=config.gateway_timeout,
            currency=config.currency,
            statement_descriptor=config.statement_descriptor,
        )
    order_service = OrderService(database.session)
    components = {
        "database": database,
        "gateway": gateway,
        "catalog": CatalogService(database.session),
        "orders": order_service,
        "reconciler": ReconciliationService(order_service, gateway),
        "refunds": RefundService(order_service, gateway, access_token=config.gateway_access_token),
    }
    app.extensions["storefront_components"] = components

    app.register_blueprint(products.products_bp)
    app.register_blueprint(orders.orders_bp)
    app.register_blueprint(webhooks.webhooks_bp)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()})

    _register_cli(app)
    return app


def _register_cli(app: Flask) -> None:
    @app.cli.command("init-db")
    @click.option("--seed/--no-seed", default=True, help="Insert the sample catalog when empty.")
    def init_db(seed: bool) -> None:
        """Create tables and optionally seed sample products."""
        components = app.extensions["storefront_components"]
        components["database"].create_all()
        click.echo("Tables created")
        if seed:
            inserted = components["catalog"].seed()
            click.echo(f"Seeded {inserted} products" if inserted else "Catalog already populated, nothing seeded")

    @app.cli.command("check-gateway")
    def check_gateway() -> None:
        """Report which MercadoPago environment the access token belongs to."""
        config: AppConfig = app.config["STOREFRONT_CONFIG"]
        token = config.gateway_access_token
        if not token:
            raise click.ClickException("MERCADOPAGO_ACCESS_TOKEN is not set")
        env = credential_environment(token)
        click.echo(f"Credential environment: {env}")
        click.echo(f"Token preview: {token[:12]}...")
        if env == "unknown":
            raise click.ClickException("Access token should start with TEST- or APP_USR-")
        click.echo(
            "Refunds only work for payments created with credentials of the same environment; "
            "test credentials cannot refund live payments and vice versa."
        )


def main() -> None:
    load_dotenv(override=False)
    config = load_env()
    app = create_app(config)
    database: Database = app.extensions["storefront_components"]["database"]
    try:
        database.ping()
    except SQLAlchemyError as exc:
        logger.error("Failed to connect to database: %s", exc)
        raise SystemExit(1) from exc
    logger.info("Serving on http://0.0.0.0:%s (environment=%s)", config.port, config.environment)
    app.run(host="0.0.0.0", port=config.port, debug=False)


if __name__ == "__main__":
    main()

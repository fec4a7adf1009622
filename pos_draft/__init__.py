"""Flask application factory."""
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Setup Prometheus metrics instrumentation
    from pos_draft.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_sale_services(app)

    from pos_draft.middleware import load_operator

    @app.before_request
    def before_request_handler():
        """Load operator context for each request."""
        load_operator()

    # Error Handlers
    from pos_draft.exceptions import DraftError

    @app.errorhandler(DraftError)
    def handle_draft_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"DraftError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"DraftError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error):
        code = (error.name or 'error').lower().replace(' ', '_')
        return jsonify({'status': 'error', 'code': code, 'message': error.name}), error.code

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.path}: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'code': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from pos_draft.blueprints.sales import sales_bp
    from pos_draft.blueprints.metrics import metrics_bp

    app.register_blueprint(sales_bp)
    app.register_blueprint(metrics_bp)

    app.logger.info(f"SALE_API_URL={app.config.get('SALE_API_URL')}")

    return app


def init_sale_services(app):
    """
    Wire the draft engine to its collaborators and store them in app.extensions.

    Tests replace the backend clients in app.extensions['pos_draft'].
    """
    from pos_draft.models.payment import DEFAULT_METHOD_LABELS, normalize_payment_method
    from pos_draft.models.unit import UnitCatalog
    from pos_draft.services.backend_client import ClientDirectoryClient, ProductCatalogClient, SaleBackendClient
    from pos_draft.services.collaborators import ExchangeRateSnapshot
    from pos_draft.services.draft_registry import DraftRegistry
    from pos_draft.services.sale_draft_service import SaleDraft

    config = app.config
    rates = ExchangeRateSnapshot(Decimal(str(config.get('DEFAULT_EXCHANGE_RATE', '12500'))))
    unit_catalog = UnitCatalog(config.get('DEFAULT_UNIT_SHORT_NAME', 'pcs'))

    labels = dict(DEFAULT_METHOD_LABELS)
    for method, label in (config.get('PAYMENT_METHOD_LABELS') or {}).items():
        labels[normalize_payment_method(method)] = label

    def draft_factory(operator):
        return SaleDraft(
            operator,
            exchange_rates=rates,
            unit_catalog=unit_catalog,
            fallback_price=Decimal(str(config.get('FALLBACK_UNIT_PRICE', '10000'))),
            debt_term_days=int(config.get('DEBT_DEFAULT_TERM_DAYS', 30)),
            epsilon=Decimal(str(config.get('PAYMENT_EPSILON', '0.01'))),
        )

    app.extensions['pos_draft'] = {
        'registry': DraftRegistry(draft_factory),
        'rates': rates,
        'unit_catalog': unit_catalog,
        'labels': labels,
        'sale_backend': SaleBackendClient.from_config(config),
        'client_directory': ClientDirectoryClient.from_config(config),
        'product_catalog': ProductCatalogClient.from_config(config),
    }

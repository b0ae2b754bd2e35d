from flask import Flask
from flasgger import Swagger
from prometheus_flask_exporter import PrometheusMetrics
from flask_cors import CORS
import os

from .logging_setup import setup_logging
from .routes import health, scan_routes, report_routes, batch_routes
from .config import DevelopmentConfig, ProductionConfig, TestingConfig


def create_app(config_name: str = "development"):
    app = Flask(__name__)

    config_map = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
    }
    app.config.from_object(config_map.get(config_name.lower(), DevelopmentConfig))

    setup_logging(app)

    # CORS_ORIGINS unset or '*' -> any origin; otherwise a comma-separated allow-list
    cors_origin = os.getenv("CORS_ORIGINS", "*").strip()
    cors_common_kwargs = dict(
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS", "HEAD"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "X-Requested-With",
            "X-Request-ID",
            "Accept",
            "Origin",
        ],
    )
    if cors_origin in ("*", ""):
        CORS(app, resources={r"/*": {"origins": "*"}}, **cors_common_kwargs)
    else:
        origins_list = [o.strip() for o in cors_origin.split(",") if o.strip()]
        CORS(app, resources={r"/*": {"origins": origins_list}}, **cors_common_kwargs)

    from .models import init_app as init_models
    init_models(app)

    from .cli import init_app as init_cli
    init_cli(app)

    # Scan queue + pipeline (+ on-chain listener when configured)
    from .scanning import init_scanning
    init_scanning(app)

    swagger_template = {
        "swagger": "2.0",
        "info": {
            "title": "DeFi Risk Oracle API",
            "description": "Smart contract scan queue, risk reports and batch scans.",
            "version": "1.0.0",
        },
        "basePath": "/",
        "schemes": ["https", "http"],
    }
    swagger_config = {
        "headers": [],
        "specs": [
            {
                "endpoint": "apispec_1",
                "route": "/apispec_1.json",
                "rule_filter": lambda rule: True,
                "model_filter": lambda tag: True,
            }
        ],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/apidocs/",
    }
    Swagger(app, template=swagger_template, config=swagger_config)

    # Blueprints
    app.register_blueprint(health.bp)
    app.register_blueprint(scan_routes.bp)
    app.register_blueprint(report_routes.bp)
    app.register_blueprint(batch_routes.bp, url_prefix="/api/batch")

    # Metrics
    metrics = PrometheusMetrics(app, path="/metrics")
    metrics.info("app_info", "DeFi Risk Oracle service", version="1.0.0")

    return app

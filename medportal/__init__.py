"""
MedPortal Application Factory
"""
import logging
import os
from datetime import datetime, timezone
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from medportal.config import config as config_map

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config_map.get(config_name, config_map['default']))

    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please log in to access this page.'

    # Register blueprints
    from medportal.auth import auth_bp
    from medportal.api import api_bp
    from medportal.portal import portal_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(portal_bp, url_prefix='/api')

    # JSON clients don't send CSRF tokens
    csrf.exempt(api_bp)
    csrf.exempt(portal_bp)

    @app.route('/healthz')
    def healthz():
        """Health check for load balancers and monitoring"""
        try:
            from sqlalchemy import text
            db.session.execute(text('SELECT 1'))
            db_status = "ok"
        except Exception as e:
            db_status = f"error: {e}"

        from medportal.services.ai_service import client_ready, model_name
        ai_ok, ai_msg = client_ready()

        return jsonify({
            "status": "ok" if db_status == "ok" else "degraded",
            "version": app.config['APP_VERSION'],
            "database": db_status,
            "openai_ready": ai_ok,
            "openai_message": ai_msg,
            "model": model_name(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    @app.route('/version')
    def version():
        """Version and build info"""
        return jsonify({
            "version": app.config['APP_VERSION'],
            "build_time": app.config['BUILD_TIME'],
            "git_commit": app.config['GIT_COMMIT'],
            "features": {
                "image_analysis": True,
                "symptom_diagnosis": True,
                "recommendations": True,
                "pdf_export": True,
            }
        })

    with app.app_context():
        from sqlalchemy import inspect

        if os.getenv('RESET_DB', '').strip() in ('1', 'true', 'yes'):
            app.logger.warning('RESET_DB is set - dropping all tables...')
            db.drop_all()
            db.create_all()
            app.logger.warning('Fresh tables created')
        else:
            # Only create tables if they don't exist (safe for existing DB)
            inspector = inspect(db.engine)
            if not inspector.get_table_names():
                app.logger.info('No tables found, creating...')
                db.create_all()

    return app

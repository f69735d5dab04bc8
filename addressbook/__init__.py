"""
Address book - contacts and their phones.

This module contains the Flask application factory, which wires
configuration, extensions, logging, blueprints and error handlers.
"""
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, render_template, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from addressbook.config import config_from_env
from addressbook.extensions import db, login_manager, limiter, migrate

__version__ = '0.1.0'


def configure_logging(app):
    """Attach a rotating file handler outside debug and testing."""
    if app.debug or app.testing:
        return
    log_dir = app.config['LOG_DIR']
    if not os.path.exists(log_dir):
        os.mkdir(log_dir)
    file_handler = RotatingFileHandler(os.path.join(log_dir, 'addressbook.log'),
                                       maxBytes=10240, backupCount=10)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'))
    file_handler.setLevel(app.config['LOG_LEVEL'])
    app.logger.addHandler(file_handler)
    app.logger.setLevel(app.config['LOG_LEVEL'])
    # Repository loggers share the app's file
    logging.getLogger('addressbook').addHandler(file_handler)
    logging.getLogger('addressbook').setLevel(app.config['LOG_LEVEL'])
    app.logger.info('Address book startup')


def register_error_handlers(app):
    @app.errorhandler(403)
    def forbidden(error):
        """Handle 403 errors."""
        return render_template('errors/403.html'), 403

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        db.session.rollback()
        return render_template('errors/500.html'), 500


def create_app(config_class=None, config=None):
    """
    Create and configure the address book Flask application.

    Args:
        config_class: Configuration class; picked from ADDRESSBOOK_ENV when omitted
        config: Optional dictionary of overrides applied on top of the class

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)
    app.config.from_object(config_class or config_from_env())

    # Apply custom config if provided
    if config:
        app.config.update(config)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    login_manager.login_view = 'sessions.new'
    limiter.init_app(app)
    migrate.init_app(app, db)

    # Registers the user loader
    from addressbook import auth  # noqa: F401
    from addressbook.routes import register_blueprints
    register_blueprints(app)
    register_error_handlers(app)
    configure_logging(app)

    @app.route('/health')
    def health_check():
        """
        Health check endpoint for monitoring.

        Returns:
            JSON response with status and timestamp
        """
        try:
            db.session.execute(text('SELECT 1'))
            database = 'healthy'
        except SQLAlchemyError as e:
            app.logger.error(f"Health check failed: {str(e)}")
            database = 'unhealthy'
        status = 200 if database == 'healthy' else 503
        return jsonify({
            'status': database,
            'timestamp': datetime.utcnow().isoformat(),
            'service': 'Address Book'
        }), status

    # Create database tables
    with app.app_context():
        db.create_all()

    return app

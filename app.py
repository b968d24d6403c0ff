# Main Flask app
import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify

from config import config
from extensions import bcrypt, cors, jwt
from geo import ensure_earthdistance
from models import db
from routes import auth_bp, users_bp, restaurants_bp, restaurant_post_bp, main_bp


def _configure_logging(app):
    if app.config.get('LOG_TO_FILE'):
        log_dir = app.config['LOG_DIR']
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(os.path.join(log_dir, 'social_bites.log'),
                                           maxBytes=10240, backupCount=10)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)


def _register_jwt_handlers():
    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"message": "Authentication required", "error": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"message": "Invalid session, please log in again", "error": reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"message": "Session has expired, please log in again", "error": "token expired"}), 401


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, supports_credentials=True, origins=app.config['CORS_ORIGINS'])
    _register_jwt_handlers()

    # Register blueprints
    app.register_blueprint(main_bp, url_prefix='/')
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(users_bp, url_prefix='/users')
    app.register_blueprint(restaurants_bp, url_prefix='/restaurant')
    app.register_blueprint(restaurant_post_bp, url_prefix='/restaurant-post')

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"message": "Not found", "error": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"message": "Method not allowed", "error": str(e)}), 405

    @app.cli.command("init-db")
    def init_db_command():
        """Create the earthdistance extensions and all tables."""
        ensure_earthdistance(db.engine)
        db.create_all()
        app.logger.info('Database initialized')

    app.logger.info('Social Bites startup')
    return app


if __name__ == '__main__':
    create_app(os.environ.get('FLASK_CONFIG', 'default')).run()

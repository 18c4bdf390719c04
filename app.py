import os
import sys
import logging

from flask import Flask, g
from flask_login import LoginManager

from config import Config
from extensions import api, limiter
from routes.auth import auth_bp
from routes.core import core_bp
from routes.records import records_bp
from routes.utils import cache

logger = logging.getLogger(__name__)

def create_app(config_object=Config):
    # Use RESOURCE_DIR for PyInstaller onefile data (sys._MEIPASS) or BASE_DIR otherwise
    resource_dir = getattr(sys, '_MEIPASS', str(Config.BASE_DIR))
    templates_path = os.path.join(resource_dir, 'templates')
    static_path = os.path.join(resource_dir, 'static')

    # Optional: keep working dir consistent when frozen
    if getattr(sys, 'frozen', False):
        try:
            os.chdir(str(Config.BASE_DIR))
        except OSError:
            logger.exception("Failed to chdir to BASE_DIR in frozen mode")

    app = Flask(
        __name__,
        instance_relative_config=True,
        template_folder=templates_path,
        static_folder=static_path,
        static_url_path='/static',
    )
    app.config.from_object(config_object)

    # Cache, rate limiter and REST client
    app.config.setdefault('CACHE_TYPE', 'SimpleCache')
    cache.init_app(app)
    limiter.init_app(app)
    api.init_app(app)

    # The session gate is a before_app_request hook on auth_bp; register it first
    app.register_blueprint(auth_bp)
    app.register_blueprint(core_bp)
    app.register_blueprint(records_bp)

    # --- Login Manager ---
    # Users come from the session gate, not from a user id in the cookie
    login_manager = LoginManager()
    login_manager.login_view = 'auth.login'
    login_manager.login_message = None
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_user_from_gate(_request):
        store = g.get('auth_store')
        if store is None or not store.session.is_authenticated:
            return None
        return store.session.user

    logger.info("Storefront admin configured for API %s", app.config['API_BASE_URL'])
    return app

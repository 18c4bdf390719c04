import os
import configparser
from pathlib import Path
import sys

class Config:
    if getattr(sys, 'frozen', False):
        BASE_DIR = Path(sys.executable).parent
    else:
        BASE_DIR = Path(__file__).resolve().parent

    RESOURCE_DIR = Path(getattr(sys, '_MEIPASS', BASE_DIR))

    CONFIG_FILE_RUNTIME = BASE_DIR / 'app_config.ini'
    CONFIG_FILE_BUNDLED = RESOURCE_DIR / 'app_config.ini'

    DEFAULT_API_BASE_URL = 'http://localhost:8000'

    # ✅ LOG DIRECTORY CONFIGURATION
    @staticmethod
    def get_log_dir(base_dir=None):
        """Get log directory with write permissions."""
        # 1. Check environment variable
        env_log = os.environ.get('STOREFRONT_LOG_DIR')
        if env_log:
            log_dir = Path(env_log)
            try:
                log_dir.mkdir(parents=True, exist_ok=True)
                return log_dir
            except OSError:
                pass

        # 2. User data directory
        try:
            if os.name == 'nt':
                base = Path(os.environ.get('APPDATA', Path.home() / 'AppData' / 'Roaming'))
                log_dir = base / 'StorefrontAdmin' / 'logs'
            else:
                log_dir = Path.home() / '.local' / 'share' / 'storefront' / 'logs'
            log_dir.mkdir(parents=True, exist_ok=True)
            return log_dir
        except (OSError, RuntimeError):
            pass

        # 3. Fallback: BASE_DIR/logs
        try:
            log_dir = Path(base_dir or Config.BASE_DIR) / 'logs'
            log_dir.mkdir(parents=True, exist_ok=True)
            return log_dir
        except OSError:
            import tempfile
            return Path(tempfile.gettempdir()) / 'storefront_logs'

    LOG_DIR = get_log_dir.__func__(BASE_DIR)
    LOG_FILE = LOG_DIR / 'storefront.log'

    # Prefer storing the secret near the EXE, but fall back to a user-writable location
    @staticmethod
    def _user_secret_path():
        try:
            if os.name == 'nt':
                base = Path(os.environ.get('APPDATA', str(Path.home() / 'AppData' / 'Roaming')))
                return base / 'StorefrontAdmin' / '.secret_key'
            else:
                return Path.home() / '.storefront' / '.secret_key'
        except RuntimeError:
            return Path.home() / '.secret_key'

    SECRET_FILE = BASE_DIR / '.secret_key'
    USER_SECRET_FILE = _user_secret_path.__func__()

    config_parser = configparser.ConfigParser()
    if CONFIG_FILE_RUNTIME.exists():
        config_parser.read(CONFIG_FILE_RUNTIME, encoding='utf-8')
    elif CONFIG_FILE_BUNDLED.exists():
        config_parser.read(CONFIG_FILE_BUNDLED, encoding='utf-8')

    if config_parser.sections():
        API_BASE_URL = config_parser.get('api', 'base_url', fallback='')
        API_TIMEOUT = float(config_parser.get('api', 'timeout', fallback='10'))
        CURRENCY_SYMBOL = config_parser.get('app', 'currency_symbol', fallback='৳')
        PROFILE_CACHE_SECONDS = config_parser.getint('app', 'profile_cache_seconds', fallback=30)
        DEBUG = config_parser.getboolean('app', 'debug', fallback=False)
    else:
        API_BASE_URL = os.environ.get('API_BASE_URL', '')
        API_TIMEOUT = float(os.environ.get('API_TIMEOUT', 10))
        CURRENCY_SYMBOL = os.environ.get('CURRENCY_SYMBOL', '৳')
        PROFILE_CACHE_SECONDS = int(os.environ.get('PROFILE_CACHE_SECONDS', 30))
        DEBUG = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'

    if not API_BASE_URL:
        print(f"WARNING: API_BASE_URL not configured.  Using {DEFAULT_API_BASE_URL}.")
        API_BASE_URL = DEFAULT_API_BASE_URL

    SECRET_KEY = None
    if config_parser.sections():
        SECRET_KEY = config_parser.get('app', 'secret_key', fallback=None)
        if SECRET_KEY == 'AUTO_GENERATED':
            SECRET_KEY = None

    if not SECRET_KEY:
        try:
            # Try runtime-local secret
            if SECRET_FILE.exists():
                SECRET_KEY = SECRET_FILE.read_text().strip()
            else:
                # Try user-writable secret
                if not USER_SECRET_FILE.parent.exists():
                    USER_SECRET_FILE.parent.mkdir(parents=True, exist_ok=True)
                if USER_SECRET_FILE.exists():
                    SECRET_KEY = USER_SECRET_FILE.read_text().strip()
                else:
                    SECRET_KEY = os.urandom(32).hex()
                    USER_SECRET_FILE.write_text(SECRET_KEY)
                    try:
                        os.chmod(USER_SECRET_FILE, 0o600)
                    except OSError:
                        pass
        except OSError:
            SECRET_KEY = os.urandom(32).hex()

    # Key the bearer token is persisted under in the signed session cookie
    TOKEN_SESSION_KEY = 'token'

    CACHE_TYPE = 'SimpleCache'
    CACHE_DEFAULT_TIMEOUT = 60

    RATELIMIT_STORAGE_URI = 'memory://'

    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 60 * 60 * 12

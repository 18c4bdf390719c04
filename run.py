import os
import socket
import threading
import logging
import webbrowser
from logging.handlers import RotatingFileHandler
from pathlib import Path

from config import Config
from app import create_app

def get_lan_ip() -> str:
    """Return the host's LAN IP (best-effort), fallback to 127.0.0.1."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # Doesn't need to be reachable; used to pick the right interface
        s.connect(('8.8.8.8', 80))
        ip = s.getsockname()[0]
    except OSError:
        ip = '127.0.0.1'
    finally:
        s.close()
    return ip

def open_browser_later(url: str, delay: float = 1.5):
    """Open default browser to URL after a short delay (so server is ready)."""
    def _open():
        try:
            webbrowser.open(url, new=2)  # new=2 -> new tab, if possible
        except webbrowser.Error:
            logging.warning("Could not open a browser for %s", url)
    threading.Timer(delay, _open).start()

def configure_logging(log_dir=None):
    """
    Send logs to a rotating file under the log directory and to the console.

    Returns the log file path.
    """
    log_dir = Path(log_dir or Config.get_log_dir())
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"WARNING: Could not create log directory {log_dir}:  {e}")
        import tempfile
        log_dir = Path(tempfile.gettempdir())

    logfile = log_dir / 'storefront.log'

    # ✅ Add log rotation to prevent huge log files
    file_handler = RotatingFileHandler(
        logfile,
        maxBytes=10*1024*1024,  # 10 MB
        backupCount=5,  # Keep 5 backup files
        encoding='utf-8'
    )
    file_handler.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)

    logging.basicConfig(
        level=os.environ.get('LOGLEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[file_handler, console_handler],
        force=True,
    )
    return logfile

if __name__ == '__main__':
    logfile = configure_logging()
    logging.info(f"📁 Logging to:  {logfile}")
    logging.info(f"🖥️  Running from: {Config.BASE_DIR}")

    app = create_app()

    # Bind to all interfaces so other devices on LAN can connect
    host_bind = os.environ.get('FLASK_HOST', '0.0.0.0')
    port = int(os.environ.get('FLASK_PORT', '5000'))

    # Build a user-friendly URL using the host's LAN IP
    lan_ip = get_lan_ip()
    url = f'http://{lan_ip}:{port}/'

    if os.environ.get('OPEN_BROWSER', '1') not in ('0', 'false', 'False'):
        open_browser_later(url, delay=1.5)

    # Prefer Waitress for production serving
    use_waitress = os.environ.get('USE_WAITRESS', '1') not in ('0', 'false', 'False')
    if use_waitress:
        try:
            from waitress import serve
            threads = int(os.environ.get('WAITRESS_THREADS', '8'))
            logging.info(f"🚀 Starting Storefront Admin at {url} (Waitress, threads={threads})")
            serve(app, host=host_bind, port=port, threads=threads)
        except Exception:
            logging.exception("Waitress failed; falling back to Flask dev server")
            debug = getattr(Config, 'DEBUG', False)
            app.run(host=host_bind, port=port, debug=debug, use_reloader=False)
    else:
        # Dev-only fallback
        debug = getattr(Config, 'DEBUG', False)
        logging.info(f"🚀 Starting Storefront Admin at {url} (Flask dev server)")
        app.run(host=host_bind, port=port, debug=debug, use_reloader=False)

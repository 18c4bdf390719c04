import configparser
import sys
from pathlib import Path

def get_base_dir():
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    return Path(__file__).parent

def run_setup(base_dir=None, prompt=input):
    print("=" * 60)
    print("Storefront Admin - First Time Setup")
    print("=" * 60)

    config = configparser.ConfigParser()

    # Backend settings
    print("\n[API CONFIGURATION]")
    base_url = prompt("API Base URL [http://localhost:8000]: ").strip() or 'http://localhost:8000'
    timeout = prompt("Request timeout in seconds [10]: ").strip() or '10'

    config['api'] = {
        'base_url': base_url.rstrip('/'),
        'timeout': timeout,
    }

    # App settings
    print("\n[APPLICATION SETTINGS]")
    currency = prompt("Currency symbol [৳]: ").strip() or '৳'

    config['app'] = {
        'secret_key': 'AUTO_GENERATED',
        'currency_symbol': currency,
        'profile_cache_seconds': '30',
        'debug': 'False'
    }

    # Save config next to the executable/script
    config_file = Path(base_dir or get_base_dir()) / 'app_config.ini'
    with open(config_file, 'w', encoding='utf-8') as f:
        config.write(f)

    print(f"\n✅ Configuration saved to {config_file}")
    print("\nYou can now start Storefront Admin with: python run.py")
    return config_file

if __name__ == '__main__':
    run_setup()
    input("\nPress Enter to continue...")

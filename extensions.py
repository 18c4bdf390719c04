from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from api_client import ApiClient

limiter = Limiter(key_func=get_remote_address)

api = ApiClient()

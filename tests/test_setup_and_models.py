import configparser

from first_time_setup import run_setup
from models import RESOURCES, ApiUser


def test_run_setup_writes_config(tmp_path):
    answers = iter(['http://backend.local:9000/', '5', '$'])

    path = run_setup(base_dir=tmp_path, prompt=lambda _msg: next(answers))

    parser = configparser.ConfigParser()
    parser.read(path, encoding='utf-8')
    assert path == tmp_path / 'app_config.ini'
    assert parser.get('api', 'base_url') == 'http://backend.local:9000'
    assert parser.getfloat('api', 'timeout') == 5.0
    assert parser.get('app', 'currency_symbol') == '$'
    assert parser.get('app', 'secret_key') == 'AUTO_GENERATED'


def test_run_setup_defaults(tmp_path):
    path = run_setup(base_dir=tmp_path, prompt=lambda _msg: '')

    parser = configparser.ConfigParser()
    parser.read(path, encoding='utf-8')
    assert parser.get('api', 'base_url') == 'http://localhost:8000'
    assert parser.get('app', 'currency_symbol') == '৳'
    assert parser.getint('app', 'profile_cache_seconds') == 30


def test_user_from_payload():
    user = ApiUser.from_payload({'id': 3, 'email': 'a@example.com', 'role': {'id': 1, 'name': 'manager'}})

    assert user.get_id() == '3'
    assert user.role == 'manager'
    assert user.name == ''
    assert user.is_authenticated
    assert user.to_dict()['email'] == 'a@example.com'


def test_resource_editable_fields():
    sale = RESOURCES['sale']
    assert 'totalAmount' in [f.name for f in sale.editable_fields(creating=True)]
    assert 'totalAmount' not in [f.name for f in sale.editable_fields(creating=False)]
    assert sale.attach_user and sale.has_stats
    assert RESOURCES['customer'].server_search

import pytest

from roadmap.config.settings import Settings
from roadmap.query.factory import create_binding, has_remote_credentials
from roadmap.query.local import LocalBinding
from roadmap.query.remote import RemoteBinding

@pytest.mark.parametrize("url,key,expected", [
    ("https://abc.supabase.co", "real-key", True),
    ("https://abc.supabase.co", "", False),
    (None, "real-key", False),
    ("https://your-project.supabase.co", "real-key", False),
    ("https://abc.supabase.co", "your-anon-key", False),
])
def test_has_remote_credentials(url, key, expected):
    assert has_remote_credentials(url, key) is expected

def test_local_binding_without_credentials(store):
    settings = Settings(_env_file=None, STORE_MEDIUM="memory")
    binding = create_binding(settings, store)
    assert isinstance(binding, LocalBinding)
    assert binding.store is store

def test_placeholder_credentials_stay_local(store):
    settings = Settings(_env_file=None, REMOTE_URL="https://your-project.supabase.co", REMOTE_KEY="your-anon-key")
    assert create_binding(settings, store).name == "local"

def test_remote_binding_with_credentials():
    settings = Settings(_env_file=None, REMOTE_URL="https://abc.supabase.co", REMOTE_KEY="secret-key")
    binding = create_binding(settings)
    assert isinstance(binding, RemoteBinding)
    assert binding.base_url == "https://abc.supabase.co/rest/v1/"

def test_local_binding_requires_store():
    with pytest.raises(ValueError):
        create_binding(Settings(_env_file=None))

def test_short_api_secret_is_rejected():
    with pytest.raises(ValueError):
        Settings(_env_file=None, ROADMAP_API_SECRET="too-short")

def test_api_secret_read_from_environment(monkeypatch):
    monkeypatch.setenv("ROADMAP_API_SECRET", "x" * 40)
    assert Settings(_env_file=None).ROADMAP_API_SECRET.get_secret_value() == "x" * 40

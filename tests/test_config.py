"""
Configuration Tests
"""
from medportal import config as config_module
from medportal.config import DevelopmentConfig, TestingConfig, get_config, get_parameter


class TestConfig:
    """Environment and Parameter Store lookups"""

    def test_environment_wins(self, monkeypatch):
        monkeypatch.setenv('OPENAI_API_KEY', 'sk-env')
        assert get_parameter('openai-api-key', 'fallback') == 'sk-env'

    def test_default_without_parameter_store(self, monkeypatch):
        monkeypatch.delenv('MEDPORTAL_UNSET_VALUE', raising=False)
        monkeypatch.delenv('USE_PARAMETER_STORE', raising=False)
        assert get_parameter('medportal-unset-value', 'fallback') == 'fallback'

    def test_postgres_url_rewritten(self, monkeypatch):
        monkeypatch.setenv('DATABASE_URL', 'postgres://u:p@db:5432/medportal')
        assert config_module._database_url() == 'postgresql://u:p@db:5432/medportal'

    def test_get_config(self):
        assert get_config('testing') is TestingConfig
        assert get_config('nonsense') is DevelopmentConfig

    def test_testing_config(self):
        assert TestingConfig.SQLALCHEMY_DATABASE_URI == 'sqlite:///:memory:'
        assert TestingConfig.WTF_CSRF_ENABLED is False

    def test_package_exposes_config_module(self):
        import medportal
        assert medportal.config is config_module
        assert callable(medportal.config.get_parameter)

    def test_parameter_store_failure_logged(self, monkeypatch, caplog):
        class BrokenSSM:
            def get_parameter(self, **kwargs):
                raise RuntimeError('access denied')

        monkeypatch.delenv('MEDPORTAL_SECRET', raising=False)
        monkeypatch.setenv('USE_PARAMETER_STORE', '1')
        monkeypatch.setattr(config_module.boto3, 'client', lambda *args, **kwargs: BrokenSSM())

        with caplog.at_level('WARNING', logger='medportal.config'):
            assert get_parameter('medportal-secret', 'fallback') == 'fallback'
        assert 'access denied' in caplog.text

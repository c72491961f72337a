"""
Tests for configuration loading and environment profiles.
"""

import pytest

from reclaim.config import (
    ConfigError,
    ReclaimConfig,
    environment_profile,
    get_boolean_config_from_env_var,
    get_config_from_env_var,
    get_number_config_from_env_var,
    qualify_repository,
)


@pytest.fixture
def clean_env(monkeypatch):
    for var in (
        "RECLAIM_BASE_NAME", "RECLAIM_ENVIRONMENT", "APIGEE_ENVIRONMENT", "RECLAIM_API_BASE_PATH",
        "RECLAIM_HOSTED_ZONE_NAME", "RECLAIM_REPOSITORY", "RECLAIM_API_DOMAIN", "RECLAIM_COOLDOWN_SECONDS",
        "RECLAIM_EMBARGO_HOURS", "RECLAIM_DRY_RUN", "AWS_REGION", "GITHUB_TOKEN", "APIM_STATUS_API_KEY",
        "RECLAIM_PROXYGEN_API_NAME", "RECLAIM_PROXYGEN_PRIVATE_KEY_NAME", "RECLAIM_PROXYGEN_KID",
    ):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestEnvVarHelpers:
    """Test environment variable helpers."""

    def test_get_config(self, clean_env):
        clean_env.setenv("RECLAIM_BASE_NAME", "eps-api")
        assert get_config_from_env_var("BASE_NAME") == "eps-api"

    def test_missing_config(self, clean_env):
        with pytest.raises(ConfigError, match="RECLAIM_BASE_NAME is not set"):
            get_config_from_env_var("BASE_NAME")

    def test_custom_prefix(self, clean_env):
        clean_env.setenv("CDK_CONFIG_stackName", "x")
        assert get_config_from_env_var("stackName", prefix="CDK_CONFIG_") == "x"

    def test_boolean(self, clean_env):
        clean_env.setenv("RECLAIM_DRY_RUN", "TRUE")
        assert get_boolean_config_from_env_var("DRY_RUN")
        clean_env.setenv("RECLAIM_DRY_RUN", "no")
        assert not get_boolean_config_from_env_var("DRY_RUN")

    def test_number(self, clean_env):
        clean_env.setenv("RECLAIM_COOLDOWN_SECONDS", "1.5")
        assert get_number_config_from_env_var("COOLDOWN_SECONDS") == 1.5
        clean_env.setenv("RECLAIM_COOLDOWN_SECONDS", "soon")
        with pytest.raises(ConfigError, match="not a number"):
            get_number_config_from_env_var("COOLDOWN_SECONDS")


class TestEnvironmentProfile:
    """Test environment to domain mapping."""

    def test_prod(self):
        profile = environment_profile("prod")
        assert profile.domain == "api.service.nhs.uk"
        assert not profile.has_sandbox

    def test_int(self):
        profile = environment_profile("int")
        assert profile.domain == "int.api.service.nhs.uk"
        assert profile.sandbox_domain == "sandbox.api.service.nhs.uk"
        assert profile.has_sandbox

    def test_internal_dev(self):
        profile = environment_profile("internal-dev")
        assert profile.domain == "internal-dev.api.service.nhs.uk"
        assert profile.sandbox_domain == "internal-dev-sandbox.api.service.nhs.uk"

    def test_other_environment_has_no_sandbox(self):
        profile = environment_profile("ref")
        assert profile.domain == "ref.api.service.nhs.uk"
        assert profile.sandbox_domain is None

    def test_custom_domain(self):
        assert environment_profile("int", "api.example.org").sandbox_domain == "sandbox.api.example.org"

    def test_empty_environment(self):
        with pytest.raises(ConfigError):
            environment_profile("")


class TestReclaimConfig:
    """Test loading the full configuration."""

    def test_from_env(self, clean_env):
        clean_env.setenv("RECLAIM_BASE_NAME", "eps-api")
        clean_env.setenv("APIGEE_ENVIRONMENT", "int")
        clean_env.setenv("RECLAIM_API_BASE_PATH", "status-path")
        clean_env.setenv("RECLAIM_HOSTED_ZONE_NAME", "dev.eps.national.nhs.uk.")
        clean_env.setenv("RECLAIM_COOLDOWN_SECONDS", "5")
        clean_env.setenv("RECLAIM_DRY_RUN", "true")
        clean_env.setenv("GITHUB_TOKEN", "gh-token")
        clean_env.setenv("APIM_STATUS_API_KEY", "status-key")

        config = ReclaimConfig.from_env()

        assert config.base_name == "eps-api"
        assert config.environment == "int"
        assert config.api_base_path == "status-path"
        assert config.hosted_zone_name == "dev.eps.national.nhs.uk."
        assert config.cooldown_seconds == 5.0
        assert config.embargo_hours == 24.0
        assert config.dry_run
        assert config.github_token == "gh-token"
        assert config.status_api_key == "status-key"
        assert config.profile().sandbox_domain == "sandbox.api.service.nhs.uk"

    def test_defaults(self, clean_env):
        config = ReclaimConfig.from_env(base_name="eps-api")

        assert config.hosted_zone_name is None
        assert config.cooldown_seconds == 60.0
        assert not config.dry_run

    def test_reclaim_environment_wins(self, clean_env):
        clean_env.setenv("RECLAIM_ENVIRONMENT", "prod")
        clean_env.setenv("APIGEE_ENVIRONMENT", "int")
        assert ReclaimConfig.from_env(base_name="x").environment == "prod"

    def test_missing_base_name(self, clean_env):
        with pytest.raises(ConfigError):
            ReclaimConfig.from_env()

    def test_overrides_ignore_none(self):
        config = ReclaimConfig(base_name="eps-api", hosted_zone_name="zone.")
        updated = config.with_overrides(hosted_zone_name=None, dry_run=True)

        assert updated.hosted_zone_name == "zone."
        assert updated.dry_run

    def test_profile_requires_environment(self):
        with pytest.raises(ConfigError, match="Environment is required"):
            ReclaimConfig(base_name="eps-api").profile()

    def test_repository(self):
        assert ReclaimConfig(base_name="x", repository="eps-cdk-utils").qualified_repository() == "NHSDigital/eps-cdk-utils"
        assert qualify_repository("someone/else") == "someone/else"
        with pytest.raises(ConfigError):
            ReclaimConfig(base_name="x").qualified_repository()

    def test_validate(self):
        with pytest.raises(ConfigError):
            ReclaimConfig(base_name="x", cooldown_seconds=-1).validate()
        with pytest.raises(ConfigError):
            ReclaimConfig(base_name="x", embargo_hours=-1).validate()

    def test_proxygen_settings(self, clean_env):
        clean_env.setenv("RECLAIM_PROXYGEN_PRIVATE_KEY_NAME", "proxygenKey")
        clean_env.setenv("RECLAIM_PROXYGEN_KID", "kid-123")

        config = ReclaimConfig.from_env(base_name="eps-api")

        assert config.api_name() == "eps-api"
        assert config.private_key_export() == "account-resources:proxygenKey"
        assert config.kid() == "kid-123"
        assert config.with_overrides(proxygen_api_name="eps").api_name() == "eps"

    def test_proxygen_settings_required(self):
        config = ReclaimConfig(base_name="eps-api")
        with pytest.raises(ConfigError, match="RECLAIM_PROXYGEN_PRIVATE_KEY_NAME"):
            config.private_key_export()
        with pytest.raises(ConfigError, match="RECLAIM_PROXYGEN_KID"):
            config.kid()

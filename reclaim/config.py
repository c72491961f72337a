"""
Configuration for reclamation sweeps.

Values come from environment variables (``RECLAIM_*`` plus the tokens used
by the status endpoint and GitHub), and can be overridden from the CLI.
"""

import os
from dataclasses import dataclass, replace
from typing import Optional

DEFAULT_PREFIX = "RECLAIM_"
DEFAULT_API_DOMAIN = "api.service.nhs.uk"
DEFAULT_REPOSITORY_OWNER = "NHSDigital"
DEFAULT_COOLDOWN_SECONDS = 60.0
DEFAULT_EMBARGO_HOURS = 24.0


class ConfigError(ValueError):
    """Required configuration is missing or invalid."""


def get_config_from_env_var(var_name: str, prefix: str = DEFAULT_PREFIX) -> str:
    """
    Read a required configuration value from the environment.

    Args:
        var_name: Variable name without prefix
        prefix: Prefix prepended to the variable name

    Returns:
        str: Variable value

    Raises:
        ConfigError: If the variable is unset or empty
    """
    value = os.environ.get(prefix + var_name)
    if not value:
        raise ConfigError(f"Environment variable {prefix}{var_name} is not set")
    return value


def get_boolean_config_from_env_var(var_name: str, prefix: str = DEFAULT_PREFIX) -> bool:
    return get_config_from_env_var(var_name, prefix).lower() == "true"


def get_number_config_from_env_var(var_name: str, prefix: str = DEFAULT_PREFIX) -> float:
    value = get_config_from_env_var(var_name, prefix)
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"Environment variable {prefix}{var_name} is not a number: {value}") from e


def _optional(var_name: str, prefix: str = DEFAULT_PREFIX) -> Optional[str]:
    return os.environ.get(prefix + var_name) or None


def qualify_repository(repository: str, default_owner: str = DEFAULT_REPOSITORY_OWNER) -> str:
    """Return ``owner/name``, adding the default owner to a bare repository name."""
    repository = repository.strip().strip("/")
    if not repository:
        raise ConfigError("Repository must not be empty")
    if "/" in repository:
        return repository
    return f"{default_owner}/{repository}"


@dataclass(frozen=True)
class EnvironmentProfile:
    """Where the live status endpoints of an environment are served."""
    name: str
    domain: str
    sandbox_domain: Optional[str] = None

    @property
    def has_sandbox(self) -> bool:
        return self.sandbox_domain is not None


# Environments that run a sandbox proxy alongside the main one
SANDBOX_PREFIXES = {
    "int": "sandbox",
    "internal-dev": "internal-dev-sandbox",
}


def environment_profile(environment: str, api_domain: str = DEFAULT_API_DOMAIN) -> EnvironmentProfile:
    """
    Build the profile for an environment.

    Args:
        environment: Environment identifier (e.g. "prod", "int", "internal-dev")
        api_domain: Root domain the environments are served under

    Returns:
        EnvironmentProfile: Domains to query for active versions
    """
    if not environment:
        raise ConfigError("Environment must not be empty")

    domain = api_domain if environment == "prod" else f"{environment}.{api_domain}"
    sandbox_prefix = SANDBOX_PREFIXES.get(environment)
    sandbox_domain = f"{sandbox_prefix}.{api_domain}" if sandbox_prefix else None
    return EnvironmentProfile(name=environment, domain=domain, sandbox_domain=sandbox_domain)


@dataclass(frozen=True)
class ReclaimConfig:
    base_name: str
    environment: Optional[str] = None
    api_base_path: Optional[str] = None
    hosted_zone_name: Optional[str] = None
    repository: Optional[str] = None
    api_domain: str = DEFAULT_API_DOMAIN
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS
    embargo_hours: float = DEFAULT_EMBARGO_HOURS
    dry_run: bool = False
    region: Optional[str] = None
    github_token: Optional[str] = None
    status_api_key: Optional[str] = None
    proxygen_api_name: Optional[str] = None
    proxygen_private_key_name: Optional[str] = None
    proxygen_kid: Optional[str] = None

    @classmethod
    def from_env(cls, base_name: Optional[str] = None) -> "ReclaimConfig":
        """Load configuration from the process environment."""
        cooldown = DEFAULT_COOLDOWN_SECONDS
        if _optional("COOLDOWN_SECONDS"):
            cooldown = get_number_config_from_env_var("COOLDOWN_SECONDS")

        embargo = DEFAULT_EMBARGO_HOURS
        if _optional("EMBARGO_HOURS"):
            embargo = get_number_config_from_env_var("EMBARGO_HOURS")

        dry_run = bool(_optional("DRY_RUN")) and get_boolean_config_from_env_var("DRY_RUN")

        return cls(
            base_name=base_name or get_config_from_env_var("BASE_NAME"),
            environment=_optional("ENVIRONMENT") or _optional("APIGEE_ENVIRONMENT", prefix=""),
            api_base_path=_optional("API_BASE_PATH"),
            hosted_zone_name=_optional("HOSTED_ZONE_NAME"),
            repository=_optional("REPOSITORY"),
            api_domain=_optional("API_DOMAIN") or DEFAULT_API_DOMAIN,
            cooldown_seconds=cooldown,
            embargo_hours=embargo,
            dry_run=dry_run,
            region=_optional("AWS_REGION", prefix=""),
            github_token=_optional("GITHUB_TOKEN", prefix=""),
            status_api_key=_optional("APIM_STATUS_API_KEY", prefix=""),
            proxygen_api_name=_optional("PROXYGEN_API_NAME"),
            proxygen_private_key_name=_optional("PROXYGEN_PRIVATE_KEY_NAME"),
            proxygen_kid=_optional("PROXYGEN_KID"),
        )

    def with_overrides(self, **overrides) -> "ReclaimConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def profile(self) -> EnvironmentProfile:
        if not self.environment:
            raise ConfigError("Environment is required (RECLAIM_ENVIRONMENT or APIGEE_ENVIRONMENT)")
        return environment_profile(self.environment, self.api_domain)

    def qualified_repository(self) -> str:
        if not self.repository:
            raise ConfigError("Repository is required (RECLAIM_REPOSITORY)")
        return qualify_repository(self.repository)

    def api_name(self) -> str:
        """Apigee API name of the proxygen instances; defaults to the base name."""
        return self.proxygen_api_name or self.base_name

    def private_key_export(self) -> str:
        if not self.proxygen_private_key_name:
            raise ConfigError("Proxygen private key name is required (RECLAIM_PROXYGEN_PRIVATE_KEY_NAME)")
        return f"account-resources:{self.proxygen_private_key_name}"

    def kid(self) -> str:
        if not self.proxygen_kid:
            raise ConfigError("Proxygen key id is required (RECLAIM_PROXYGEN_KID)")
        return self.proxygen_kid

    def validate(self) -> None:
        if self.cooldown_seconds < 0:
            raise ConfigError("Cooldown must not be negative")
        if self.embargo_hours < 0:
            raise ConfigError("Embargo window must not be negative")

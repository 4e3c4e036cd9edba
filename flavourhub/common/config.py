"""Central environment-driven settings for the FlavourHub payments backend.

The process loads this once at startup and hands the instance to the app
factory. Secrets are optional at the type level so the process can boot and
report what is missing; the components that need them refuse to work without
them.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "flavourhub-payments"
    log_level: str = "INFO"
    paystack_secret_key: str | None = None
    paystack_public_key: str | None = None
    paystack_base_url: str = "https://api.paystack.co"
    gateway_timeout_seconds: float = 10.0
    min_amount_minor: int = 50
    default_currency: str = "GHS"
    reference_prefix: str = "FH"
    admin_password: str | None = None
    admin_secret_key: str | None = None
    admin_token_ttl_hours: int = 12
    allow_client_reported_orders: bool = True
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def missing_gateway_secrets(self) -> list[str]:
        """Env names of gateway credentials that are not set."""

        return ["PAYSTACK_SECRET_KEY"] if not self.paystack_secret_key else []

    def missing_admin_secrets(self) -> list[str]:
        """Env names of admin gate secrets that are not set."""

        missing = []
        if not self.admin_password:
            missing.append("ADMIN_PASSWORD")
        if not self.admin_secret_key:
            missing.append("ADMIN_SECRET_KEY")
        return missing


def get_settings() -> Settings:
    """Build settings from the current environment."""

    return Settings()

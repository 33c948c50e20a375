from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10.v1"
    database_url: str = "sqlite:///./loyerfacile.db"
    log_level: str = "INFO"
    sql_log_level: str = "WARNING"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Auth / spaces ----
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True

    dev_header_space_slug: str = "X-Space-Slug"
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"

    jwt_secret: str = "dev-change-me"
    jwt_exp_minutes: int = 60 * 24 * 7  # 7 days

    # ---- File buckets ----
    storage_backend: str = "local"  # local|azure
    storage_root: str = "./storage"
    storage_public_base_url: str = "http://localhost:8000/files"
    azure_storage_account: str | None = None
    azure_storage_key: str | None = None

    maintenance_photos_bucket: str = "maintenance-photos"
    payment_receipts_bucket: str = "payment-receipts"

    # ---- Mapping ----
    mapbox_token: str | None = None
    mapbox_base_url: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"
    geocode_country: str = "CI"
    geocode_country_label: str = "Côte d'Ivoire"

    # ---- Payment aggregator ----
    # Without api key + site id the app runs in simulation mode.
    payment_api_key: str | None = None
    payment_site_id: str | None = None
    payment_base_url: str | None = None
    # Webhooks are settled only on the status this endpoint reports.
    payment_check_url: str | None = None
    app_domain: str = "http://localhost:5173"
    currency: str = "XOF"

    # ---- Finance ----
    forecast_default_months: int = 6
    finance_history_months: int = 12
    space_report_payment_months: int = 6

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    @property
    def payment_simulation_mode(self) -> bool:
        return not (self.payment_api_key and self.payment_site_id)

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
            if self.jwt_secret == "dev-change-me":
                raise ValueError("SECURITY: jwt_secret must be set in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()

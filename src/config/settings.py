"""
Application Settings.

Centraliza toda configuração via .env / variáveis de ambiente.
Construído uma vez no start do processo e passado adiante por parâmetro.
"""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configurações carregadas de variáveis de ambiente."""

    # --- App ---
    env: str = "development"
    debug: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # --- Admin auth ---
    api_password: str = "admin"
    api_key: str = "homologation-admin-key"

    # --- Datastore ---
    database_url: str = "sqlite+aiosqlite:///homologation.db"
    db_connect_timeout: float = 5.0

    # --- Storage ---
    storage_backend: str = "local"            # "local" | "minio"
    storage_bucket: str = "homologation-documents"
    local_storage_dir: str = "data/uploads"
    public_files_url: str = "http://localhost:8000/files"
    minio_endpoint: str = "localhost:9000"
    minio_access_key: str = ""
    minio_secret_key: str = ""
    minio_secure: bool = False
    max_upload_bytes: int = 10 * 1024 * 1024

    # --- Payments (MercadoPago) ---
    mercadopago_access_token: str = ""
    mercadopago_api_url: str = "https://api.mercadopago.com"
    gateway_timeout: float = 10.0
    default_currency: str = "ARS"
    site_url: str = "http://localhost:3000"
    api_base_url: str = "http://localhost:8000"

    # --- Workflow ---
    allow_reopen_rejected: bool = False
    reconcile_sync_attempts: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def webhook_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/api/v1/webhooks/mercadopago"


@lru_cache
def get_settings() -> Settings:
    """Singleton de settings."""
    return Settings()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

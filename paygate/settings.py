from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .schemas.payment import GatewayCredentials

Mode = Literal["sandbox", "production"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "PayGate"
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    PORT: int = 8080

    HTTP_TIMEOUT_SEC: float = 15.0
    # Public URL of this service; webhook URLs handed to providers are built from it
    PUBLIC_BASE_URL: str = "http://localhost:8080"
    # Where donors land after paying on a provider page
    RETURN_URL: Optional[str] = None

    # --- Midtrans ---
    MIDTRANS_MODE: Mode = "sandbox"
    MIDTRANS_SERVER_KEY: Optional[str] = None
    MIDTRANS_CLIENT_KEY: Optional[str] = None

    # --- Xendit ---
    XENDIT_MODE: Mode = "sandbox"
    XENDIT_SECRET_KEY: Optional[str] = None
    XENDIT_CALLBACK_TOKEN: Optional[str] = None

    # --- iPaymu ---
    IPAYMU_MODE: Mode = "sandbox"
    IPAYMU_VA: Optional[str] = None
    IPAYMU_API_KEY: Optional[str] = None

    # --- Flip ---
    FLIP_MODE: Mode = "sandbox"
    FLIP_SECRET_KEY: Optional[str] = None
    FLIP_VALIDATION_TOKEN: Optional[str] = None

    def credentials_for(self, code: str) -> GatewayCredentials:
        if code == "midtrans":
            return GatewayCredentials(server_key=self.MIDTRANS_SERVER_KEY, client_key=self.MIDTRANS_CLIENT_KEY)
        if code == "xendit":
            return GatewayCredentials(secret_key=self.XENDIT_SECRET_KEY, callback_token=self.XENDIT_CALLBACK_TOKEN)
        if code == "ipaymu":
            return GatewayCredentials(merchant_id=self.IPAYMU_VA, secret_key=self.IPAYMU_API_KEY)
        if code == "flip":
            return GatewayCredentials(secret_key=self.FLIP_SECRET_KEY, validation_token=self.FLIP_VALIDATION_TOKEN)
        return GatewayCredentials()

    def is_production_for(self, code: str) -> bool:
        mode = getattr(self, f"{code.upper()}_MODE", "sandbox")
        return mode == "production"

    def notify_url_for(self, code: str) -> str:
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/webhooks/{code}"


settings = Settings()

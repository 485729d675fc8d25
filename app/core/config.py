from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings
from stellar_sdk import Network

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "DOB Validator Auth"
    # Application settings
    PORT: int = 8000
    HOST: str = "127.0.0.1"
    VERSION: str = "0.1.0"
    DOC_PASSWORD: str | None = None

    # Debug / logging settings
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # SQLAlchemy database URL
    DATABASE_URL: str

    # Login configuration
    ENCODE_KEY: str | None = None
    ENCODE_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 7 * 24 * 60 * 60  # 7 days
    CHALLENGE_EXPIRY_SECONDS: int = 5 * 60  # 5 minutes

    # Housekeeping of expired challenges and sessions
    CLEANUP_ENABLED: bool = True
    CLEANUP_INTERVAL_SECONDS: int = 60 * 60  # 1 hour

    # Stellar
    STELLAR_NETWORK_PASSPHRASE: str = Network.TESTNET_NETWORK_PASSPHRASE
    REQUIRE_ENVELOPE_SIGNATURE: bool = False
    ALLOW_LEGACY_SIGNATURES: bool = True

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Invalid LOG_LEVEL. Must be one of: {allowed}")
        return v_upper

    @field_validator("ACCESS_TOKEN_EXPIRE_SECONDS", "CHALLENGE_EXPIRY_SECONDS", "CLEANUP_INTERVAL_SECONDS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive number of seconds")
        return v

    class Config:
        env_file = ".env"

# Instantiate the settings
settings = Settings()

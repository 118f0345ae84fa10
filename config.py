from pydantic_settings import SettingsConfigDict, BaseSettings


class Settings(BaseSettings):
    # GPS TCP Server configuration
    GPS_TCP_ENABLED: bool = True
    GPS_TCP_HOST: str = "0.0.0.0"
    GPS_TCP_PORT: int = 5093
    MAX_BUFFER_SIZE: int = 8192  # Unterminated tail kept per connection (chars)
    MAX_CONNECTIONS: int = 1000
    CONNECTION_TIMEOUT: int = 300  # Idle seconds before a tracker is dropped

    # Query API
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8080
    API_RATE_LIMIT: str = "100/5seconds"

    # JSON Lines sink for accepted positions
    DATA_FILE: str = "positions.log"
    LOG_QUEUE_SIZE: int = 10000

    # Relay to the tracking backend
    FORWARD_ENABLED: bool = True
    FORWARD_URL: str = "https://backend.sps-global.com.mx/api/osmand"
    FORWARD_TIMEOUT_MS: int = 8000
    FORWARD_ONLY_VALID: bool = True
    FORWARD_ALLOW_ZERO_COORDS: bool = False
    FORWARD_QUEUE_SIZE: int = 1000
    FORWARD_WORKERS: int = 4

    # Process logging
    PROD: bool = False
    LOG_FILE: str = "./logs/tk905_relay.log"

    model_config = SettingsConfigDict(env_file='.env', extra='ignore')


settings = Settings()

from atams import AtamsBaseSettings


class Settings(AtamsBaseSettings):
    """
    Application Settings

    Inherits from AtamsBaseSettings which includes:
    - DATABASE_URL (required)
    - ATLAS_SSO_URL, ATLAS_APP_CODE, ATLAS_ENCRYPTION_KEY, ATLAS_ENCRYPTION_IV
    - ENCRYPTION_ENABLED, ENCRYPTION_KEY, ENCRYPTION_IV (response encryption)
    - LOGGING_ENABLED, LOG_LEVEL, LOG_TO_FILE, LOG_FILE_PATH
    - CORS_ORIGINS, CORS_ALLOW_CREDENTIALS, CORS_ALLOW_METHODS, CORS_ALLOW_HEADERS
    - RATE_LIMIT_ENABLED, RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW
    - DEBUG

    All settings can be overridden via .env file or by redefining them here.
    """
    APP_NAME: str = "event-attendance"
    APP_VERSION: str = "1.0.0"

    # QR JWT Settings
    QR_JWT_SECRET: str
    QR_JWT_ALG: str = "HS256"
    QR_TOKEN_VALIDITY_SECONDS: int = 60
    QR_TOKEN_MAX_USAGE: int = 1
    QR_CLOCK_SKEW_SECONDS: int = 5

    # Display Authentication (QR kiosks)
    DISPLAY_API_KEY: str

    # Facial recognition
    FACIAL_SIMILARITY_THRESHOLD: float = 0.80
    FACE_EMBEDDING_DIMENSION: int = 512

    # Geofence settings
    GEOFENCE_ENFORCED: bool = True

    # Work session classification
    SHORT_SESSION_MINUTES: int = 15
    LONG_SESSION_HOURS: int = 12


settings = Settings()

from decouple import config, Csv

class Settings:
    # Database Configuration
    DATABASE_URL: str = config("DATABASE_URL", default="sqlite:///./catalog_admin.db")
    DATABASE_ECHO: bool = config("DATABASE_ECHO", default=False, cast=bool)

    # Storage Configuration
    UPLOAD_DIR: str = config("UPLOAD_DIR", default="uploads")
    MAX_UPLOAD_SIZE_MB: int = config("MAX_UPLOAD_SIZE_MB", default=5, cast=int)
    SUBCATEGORY_IMAGE_MAX_SIZE: int = config("SUBCATEGORY_IMAGE_MAX_SIZE", default=800, cast=int)

    # Catalog Configuration
    DEFAULT_LANGUAGE: str = config("DEFAULT_LANGUAGE", default="en")
    SUPPORTED_LANGUAGES: list = config("SUPPORTED_LANGUAGES", default="en,ar,he", cast=Csv())
    DEFAULT_PAGE_SIZE: int = config("DEFAULT_PAGE_SIZE", default=10, cast=int)
    MAX_PAGE_SIZE: int = config("MAX_PAGE_SIZE", default=100, cast=int)

    # CORS
    CORS_ORIGINS: list = config(
        "CORS_ORIGINS",
        default="http://localhost:3000,http://localhost:5173",
        cast=Csv()
    )

    # Environment
    ENVIRONMENT: str = config("ENVIRONMENT", default="development")
    DEBUG: bool = config("DEBUG", default=True, cast=bool)

    # Logging
    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")

settings = Settings()

import os


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./locallibrary.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
APP_TITLE = os.getenv("APP_TITLE", "Local Library")

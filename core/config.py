import os

# Everything is read once at import; restart the app to pick up changes.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/dangerzones.db")

MAX_POINTS_PER_USER = int(os.getenv("MAX_POINTS_PER_USER", "10"))
STORAGE_RETRIES = int(os.getenv("STORAGE_RETRIES", "3"))

# Grid cell edge, in degrees
GRID_SIZE = float(os.getenv("GRID_SIZE", "1"))

DEFAULT_MAX_CLUSTER_SIZE = int(os.getenv("DEFAULT_MAX_CLUSTER_SIZE", "20"))

API_PREFIX = os.getenv("API_PREFIX", "/api")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

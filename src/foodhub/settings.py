import os
from dotenv import load_dotenv

load_dotenv()

POSTGRES_DB = os.getenv("POSTGRES_DB", "foodhub")
POSTGRES_USER = os.getenv("POSTGRES_USER", "foodhub")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "foodhubpass")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "postgres")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

REDIS_HOST = os.getenv("REDIS_HOST", "redis")
REDIS_PORT = os.getenv("REDIS_PORT", "6379")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
TZ = os.getenv("TZ", "UTC")

# Index shows order cycles closed within this many days (plus undated ones)
ORDER_CYCLES_RECENT_DAYS = int(os.getenv("ORDER_CYCLES_RECENT_DAYS", "31"))

SQLALCHEMY_DATABASE_URL = (
    f"postgresql+psycopg2://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
)

# DATABASE_URL wins over the POSTGRES_* parts when set
DATABASE_URL = os.getenv("DATABASE_URL") or SQLALCHEMY_DATABASE_URL

REDIS_URL = f"redis://{REDIS_HOST}:{REDIS_PORT}/0"

import os


SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-super-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "10080"))

# Credential locations
AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "auth_token")
TOKEN_QUERY_PARAM = "token"

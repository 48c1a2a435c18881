import os

# Store
DONATIONS_CSV_PATH = os.getenv("DONATIONS_CSV_PATH", "donations.csv")

# CORS origins for the donation front end
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000"
).split(",")

# Rate limiting
DONATION_RATE_LIMIT = os.getenv("DONATION_RATE_LIMIT", "10/minute")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3001))

# Client
DONATION_API_URL = os.getenv("DONATION_API_URL", "http://localhost:3001/api")
DONATION_CURRENCY = os.getenv("DONATION_CURRENCY", "INR")
DEFAULT_LOCATION = os.getenv("DEFAULT_LOCATION", "India")

import os
from dotenv import load_dotenv

load_dotenv()

# Tracked users count as active if they did something in this window
ACTIVE_WINDOW_MINUTES = int(os.getenv("ACTIVE_WINDOW_MINUTES", "30"))

# Sample size at which a rollup reaches 100% confidence
CONFIDENCE_FULL_SAMPLE = int(os.getenv("CONFIDENCE_FULL_SAMPLE", "200"))

FUNNEL_STEPS = [
    step.strip()
    for step in os.getenv("FUNNEL_STEPS", "landing,engagement,form_start,lead").split(",")
    if step.strip()
]

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

GEOIP_DB_PATH = os.getenv("GEOIP_DB_PATH", "./GeoLite2-City.mmdb")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

import os

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash-exp")
AI_REQUEST_TIMEOUT = float(os.environ.get("AI_REQUEST_TIMEOUT", "30"))
AI_OVERRIDE_CONFIDENCE = float(os.environ.get("AI_OVERRIDE_CONFIDENCE", "0.8"))
AUTOMATION_WEBHOOK_URL = os.environ.get("AUTOMATION_WEBHOOK_URL")
AUTOMATION_TIMEOUT = 10
ANALYTICS_TIMEZONE = os.environ.get("ANALYTICS_TIMEZONE")
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

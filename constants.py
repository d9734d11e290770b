import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

STATIC_DIR = os.getenv("STATIC_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "public"))
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

# Participants without a display name get "Guest-" plus the first few chars of their connection id
GUEST_PREFIX = "Guest-"
GUEST_ID_CHARS = 4

PASSWORD_ERROR_MESSAGE = "Incorrect meeting password."

MEDIA_KINDS = ("video", "audio")

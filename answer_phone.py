import logging
import os

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from call_flow.settings import get_settings
from modules.request_logger import RequestLoggerMiddleware
from modules.twilio_webhook import router as voice_router

# --- Configuration ---
load_dotenv()
settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

# --- Initialize FastAPI ---
app = FastAPI(title="Phone Intake IVR")
app.add_middleware(RequestLoggerMiddleware)
app.include_router(voice_router)

logger.info(
    f"IVR configured: flow={settings.flow}, voice={settings.voice}, "
    f"hcn_lookup={'remote' if settings.hcn_lookup_url else 'local'}, "
    f"signature_validation={settings.validate_signature}"
)


@app.api_route("/", methods=["GET", "POST"])
async def index_page():
    """
    A simple endpoint to confirm the server is running.

    Returns:
        HTMLResponse: HTML response indicating server status.
    """
    return HTMLResponse(f"<h1>{settings.practice_name} IVR Server is running</h1>")


# --- Run the Application ---
if __name__ == "__main__":
    # Point the Twilio number's voice webhook at https://<public-host>/voice/welcome
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))

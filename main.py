"""
Production entrypoint for Flip Radar.

Binds to 0.0.0.0:$PORT.
"""

import os
import uvicorn

from utils.config import configure_logging

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    print(f"Starting Flip Radar on port {port}")

    # Import app here to ensure clean module loading
    from web.app import app

    uvicorn.run(app, host="0.0.0.0", port=port)

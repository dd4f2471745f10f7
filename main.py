import os
import signal
import sys
from pathlib import Path

import uvicorn

# Load .env before reading PORT/HOST/ENVIRONMENT
try:
    from dotenv import load_dotenv
    env_path = Path(__file__).resolve().parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)
except ImportError:
    pass


if __name__ == "__main__":
    """
    Entry point for Social Pulse.
    Starts the relay API (status, Facebook token handoff, SSE metrics stream).
    """
    # Ensure the current directory is in sys.path so imports work correctly
    root_dir = os.path.dirname(os.path.abspath(__file__))
    sys.path.insert(0, root_dir)

    PORT = int(os.getenv("PORT", "3000"))
    HOST = os.getenv("HOST", "127.0.0.1")
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
    RELOAD = ENVIRONMENT == "development"

    print(f"Starting Social Pulse from {root_dir}...")
    print(f"Environment: {ENVIRONMENT}")
    print(f"Server running at http://{HOST}:{PORT}")

    def signal_handler(sig, frame):
        print("\n\nShutdown signal received. Stopping server...")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, signal_handler)

    try:
        # Sessions live in process memory, so the relay always runs a single worker
        uvicorn.run(
            "pulse_web.asgi:app",
            host=HOST,
            port=PORT,
            reload=RELOAD,
            log_level="info" if ENVIRONMENT == "production" else "debug",
        )
    except KeyboardInterrupt:
        print("\n\nShutdown complete.")

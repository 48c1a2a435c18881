#!/usr/bin/env python3
"""
Donation Tracker - Startup Script
Run this script to start the donation API server
"""

import logging
import uvicorn
import os
import sys
from pathlib import Path

import config


def main():
    """Start the donation API server."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    # Relative store paths resolve against the project directory
    backend_dir = Path(__file__).parent
    os.chdir(backend_dir)

    print("🚀 Starting Donation Tracker...")
    print(f"📍 Host: {config.HOST}")
    print(f"🔌 Port: {config.PORT}")
    print(f"📁 Donations file: {Path(config.DONATIONS_CSV_PATH).resolve()}")
    print("📊 API endpoints:")
    print(f"   GET  http://localhost:{config.PORT}/api/donations")
    print(f"   POST http://localhost:{config.PORT}/api/donations")

    env_file = backend_dir / ".env"
    if not env_file.exists():
        print("⚠️  Warning: .env file not found. Using default configuration.")

    try:
        uvicorn.run(
            "main:app",
            host=config.HOST,
            port=config.PORT,
            reload=False,
            access_log=True,
            log_level="info",
            workers=1,
            server_header=False,
            timeout_keep_alive=30,
        )
    except KeyboardInterrupt:
        print("\n👋 Shutting down gracefully...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Startup script for the Classroom Sync Service.
Checks the environment, then starts uvicorn.
"""

import os
import sys
import subprocess
from pathlib import Path


def check_environment():
    """Check if the environment is properly set up."""
    print("🔍 Checking environment...")

    # Check if we're in a virtual environment
    if not (hasattr(sys, 'base_prefix') and sys.base_prefix != sys.prefix):
        print("⚠️  Warning: Not running in a virtual environment")

    env_file = Path(".env")
    if not env_file.exists():
        print("⚠️  No .env file found, using defaults and system environment variables")
        print("   Set CLASSROOM_API_URL to point at the lesson store")

    return True


def check_dependencies():
    """Check if required dependencies are installed."""
    print("📦 Checking dependencies...")

    try:
        import fastapi  # noqa: F401
        import uvicorn  # noqa: F401
        import httpx  # noqa: F401
        import sqlitedict  # noqa: F401
        print("✅ All dependencies are installed")
        return True
    except ImportError as e:
        print(f"❌ Missing dependency: {e}")
        print("   Run: pip install -e .")
        return False


def start_service():
    """Start the classroom sync service."""
    print("🚀 Starting Classroom Sync Service...")

    sys.path.append(str(Path(__file__).parent.resolve()))
    from classroom_sync.config import get_settings

    settings = get_settings()

    print(f"📍 Service: {settings.service_name}")
    print(f"🌐 Port: {settings.service_port}")
    print(f"🗄️  Cache: {settings.cache_path}")
    print(f"🔗 Lesson store: {settings.remote_base_url}")

    print("\n" + "=" * 50)
    print("🎯 Service starting at:")
    print(f"   http://localhost:{settings.service_port}")
    print(f"   Health check: http://localhost:{settings.service_port}/health")
    print(f"   API docs: http://localhost:{settings.service_port}/docs")
    print("=" * 50 + "\n")

    try:
        subprocess.run(
            [
                sys.executable, "-m", "uvicorn", "classroom_sync.main:create_app", "--factory",
                "--host", "0.0.0.0",
                "--port", str(settings.service_port),
            ],
            cwd=str(Path(__file__).parent),
            env={**os.environ, "LOG_LEVEL": settings.log_level},
        )
    except Exception as e:
        print(f"❌ Failed to start service: {e}")
        return False

    return True


def main():
    """Main startup function."""
    print("🌟 Classroom Sync Service Startup")
    print("=" * 50)

    if not check_environment():
        print("❌ Environment check failed!")
        return

    if not check_dependencies():
        print("❌ Dependency check failed!")
        return

    start_service()


if __name__ == "__main__":
    main()

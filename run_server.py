#!/usr/bin/env python3
"""
Run the Assignment Studio server
Just run: python3 run_server.py
"""
import uvicorn

from assignment_studio.core import config
from assignment_studio.main import app

if __name__ == "__main__":
    print("=" * 50)
    print(f"Assignment Studio on http://localhost:{config.SERVER_PORT} (docs at /docs)")
    if not config.TOGETHER_AI_API_KEY:
        print("WARNING: TOGETHER_AI_API_KEY is not set; generate/evaluate requests will fail")
    print("=" * 50)

    uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT, log_level=config.LOG_LEVEL.lower())

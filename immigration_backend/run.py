#!/usr/bin/env python3
"""
Quick runner for the Immigration Services API
=============================================

Usage:
    python -m immigration_backend.run
"""

import os

import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))
    print("Starting Immigration Services API...")
    print(f"API docs: http://localhost:{port}/docs")
    print(f"Health:   http://localhost:{port}/health")
    print()

    uvicorn.run(
        "immigration_backend.api:app",
        host="0.0.0.0",
        port=port,
        reload=os.environ.get("ENVIRONMENT", "development") == "development",
    )

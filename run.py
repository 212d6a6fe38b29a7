#!/usr/bin/env python3
"""
Run the Decision Analysis Orchestrator API server.

Usage:
    python run.py                    # Run on default port 8000
    python run.py --port 8080        # Run on custom port
    python run.py --reload           # Run with hot reload (dev mode)

Environment Variables (set in .env file or export):
    SILICONFLOW_API_KEY=sk-...      # Primary backend for most roles
    DEEPSEEK_API_KEY=sk-...         # Fallback backends (any subset)
    KIMI_API_KEY / ZHIPU_API_KEY / ALIYUN_API_KEY / BAIDU_API_KEY
    ANTHROPIC_API_KEY=sk-ant-...    # Optional: Claude for the decision advisor
    TAVILY_API_KEY=tvly-...         # Optional: Tavily grounding search
    SERPER_API_KEY=...              # Optional: Serper grounding search

Quick Start:
    1. Create a .env file with your API keys
    2. Install: pip install -e .
    3. Run the server: python run.py
    4. Stream an analysis:
       curl -N -X POST localhost:8000/api/analyze \\
            -H 'Content-Type: application/json' \\
            -d '{"userInput": "我有13万资金想做光伏项目"}'
"""

import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

# Load .env before config reads the environment
load_dotenv(Path(__file__).parent / ".env")

from config import config, configure_logging  # noqa: E402

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run the Decision Analysis Orchestrator API")
    parser.add_argument("--host", default=config.api_host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.api_port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    configure_logging(config.log_level)

    if not config.validate():
        logger.warning("No model backend API key found. Every role will fail until one is set.")
    else:
        logger.info("Model backends configured: %s", ", ".join(sorted(config.api_keys)))

    if not (config.tavily_api_key or config.serper_api_key):
        logger.info("No search key set; grounding search will return no results.")

    logger.info("Starting server at http://%s:%d (docs at /docs)", args.host, args.port)

    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()

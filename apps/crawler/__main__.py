"""
Crawler Module Entry Point

Allows execution via: python -m apps.crawler

Delegates to scheduler for all execution modes (run-once and cron).
"""

import asyncio

from apps.crawler.scheduler import main

if __name__ == "__main__":
    asyncio.run(main())

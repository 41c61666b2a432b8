#!/usr/bin/env python3
"""
Prospect Search API
Development launcher; production deployments run uvicorn directly.
"""

import os
import uvicorn

from prospect_search.config.settings import settings

if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))

    print(f"🚀 {settings.api_title} v{settings.api_version} on http://{host}:{port} (docs at /docs)")
    print(f"🔍 Elasticsearch {settings.elasticsearch_url}, read aliases {settings.index_aliases}")

    uvicorn.run(
        "prospect_search.main:app",
        host=host,
        port=port,
        reload=os.getenv("RELOAD", "false").lower() == "true",
        log_level=settings.log_level.lower(),
        access_log=True
    )

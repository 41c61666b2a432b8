import os
from typing import Dict, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


class Settings:
    """Application settings and configuration"""

    def __init__(self):
        self.elasticsearch_url = os.getenv("ELASTICSEARCH_URL", "http://localhost:9200")
        self.elasticsearch_username = os.getenv("ELASTICSEARCH_USERNAME")
        self.elasticsearch_password = os.getenv("ELASTICSEARCH_PASSWORD")
        self.elasticsearch_timeout = _int_env("ELASTICSEARCH_TIMEOUT", 10)

        # Read aliases per entity type
        self.contact_index = os.getenv("ELASTIC_CONTACT_INDEX", "contacts")
        self.company_index = os.getenv("ELASTIC_COMPANY_INDEX", "companies")

        # API settings
        self.api_title = "Prospect Search API"
        self.api_description = "Contact and company search with filter DSL compilation, facets and hybrid semantic ranking"
        self.api_version = "1.0.0"

        # Search settings
        self.default_per_page = _int_env("DEFAULT_PER_PAGE", 10)
        self.max_per_page = _int_env("MAX_PER_PAGE", 100)
        # Engine index.max_result_window; from + size may not exceed it
        self.max_result_window = _int_env("MAX_RESULT_WINDOW", 10000)
        self.domain_resolution_limit = _int_env("DOMAIN_RESOLUTION_LIMIT", 10000)
        self.search_cache_ttl = _int_env("SEARCH_CACHE_TTL", 60)
        self.filter_values_size = 10000

        # Embeddings
        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        self.openai_base_url = os.getenv("OPENAI_BASE_URL")
        self.embedding_model = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
        self.embedding_field = os.getenv("EMBEDDING_FIELD", "embedding")
        self.knn_num_candidates = _int_env("KNN_NUM_CANDIDATES", 100)

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def elasticsearch_auth(self):
        """Get Elasticsearch authentication tuple"""
        if self.elasticsearch_username and self.elasticsearch_password:
            return (self.elasticsearch_username, self.elasticsearch_password)
        return None

    @property
    def index_aliases(self) -> Dict[str, str]:
        return {"contact": self.contact_index, "company": self.company_index}

    @property
    def embeddings_enabled(self) -> bool:
        return bool(self.openai_api_key)

    def summary(self) -> Dict[str, Optional[object]]:
        """Non-secret configuration shown by the detailed health check"""
        return {
            "elasticsearch_url": self.elasticsearch_url,
            "elasticsearch_timeout": self.elasticsearch_timeout,
            "index_aliases": self.index_aliases,
            "default_per_page": self.default_per_page,
            "max_per_page": self.max_per_page,
            "max_result_window": self.max_result_window,
            "domain_resolution_limit": self.domain_resolution_limit,
            "search_cache_ttl": self.search_cache_ttl,
            "embeddings_enabled": self.embeddings_enabled,
            "embedding_model": self.embedding_model if self.embeddings_enabled else None,
        }


# Global settings instance
settings = Settings()

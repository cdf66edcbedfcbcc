"""
config.py - Configuration for the job tree engine
"""
import os
from typing import Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass
class JobTreeConfig:
    """Configuration for the job tree and the job query service"""

    # Query service data source
    backend_uri: str = ":memory:"
    jobs_table: str = "jobs"

    # Result caching for the query service
    cache_type: str = "memory"  # memory, redis or none
    redis_config: Dict[str, Any] = field(default_factory=dict)
    cache_ttl: int = 5  # jobs change continuously, keep this short

    # Tree loading
    default_page_size: int = 30
    max_grouping_depth: int = 4
    query_timeout: float = 30.0

    # REST API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_base_url: str = "http://localhost:8000"

    log_level: str = "INFO"

    def from_env(self) -> 'JobTreeConfig':
        """Load configuration from environment variables"""
        config = JobTreeConfig()

        config.backend_uri = os.getenv('JOB_TREE_BACKEND_URI', config.backend_uri)
        config.jobs_table = os.getenv('JOB_TREE_JOBS_TABLE', config.jobs_table)

        config.cache_type = os.getenv('JOB_TREE_CACHE_TYPE', config.cache_type)
        config.cache_ttl = int(os.getenv('JOB_TREE_CACHE_TTL', str(config.cache_ttl)))

        if config.cache_type == 'redis':
            config.redis_config = {
                'host': os.getenv('REDIS_HOST', 'localhost'),
                'port': int(os.getenv('REDIS_PORT', '6379')),
                'db': int(os.getenv('REDIS_DB', '0')),
            }

        config.default_page_size = int(os.getenv('JOB_TREE_PAGE_SIZE', str(config.default_page_size)))
        config.max_grouping_depth = int(os.getenv('JOB_TREE_MAX_GROUPING_DEPTH', str(config.max_grouping_depth)))
        config.query_timeout = float(os.getenv('JOB_TREE_QUERY_TIMEOUT', str(config.query_timeout)))

        config.api_host = os.getenv('JOB_TREE_API_HOST', config.api_host)
        config.api_port = int(os.getenv('JOB_TREE_API_PORT', str(config.api_port)))
        config.api_base_url = os.getenv('JOB_TREE_API_BASE_URL', config.api_base_url)

        config.log_level = os.getenv('JOB_TREE_LOG_LEVEL', config.log_level).upper()

        return config

    def validate(self) -> None:
        """Validate configuration settings"""
        errors = []

        if self.default_page_size <= 0:
            errors.append("default_page_size must be positive")

        if self.max_grouping_depth <= 0:
            errors.append("max_grouping_depth must be positive")

        if self.query_timeout <= 0:
            errors.append("query_timeout must be positive")

        if self.cache_ttl < 0:
            errors.append("cache_ttl must not be negative")

        if self.cache_type not in ("memory", "redis", "none"):
            errors.append(f"unknown cache_type {self.cache_type!r}")

        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"unknown log_level {self.log_level!r}")

        if errors:
            raise ValueError(f"Configuration validation errors: {'; '.join(errors)}")


class ConfigManager:
    """Manager for configuration loading and validation"""

    def __init__(self):
        self.config: Optional[JobTreeConfig] = None

    def load_config(self, config_source: Optional[str] = None) -> JobTreeConfig:
        """Load configuration from the environment ('env') or defaults"""
        if config_source == 'env':
            self.config = JobTreeConfig().from_env()
        else:
            self.config = JobTreeConfig()

        self.config.validate()
        return self.config

    def get_config(self) -> JobTreeConfig:
        if self.config is None:
            self.config = self.load_config()
        return self.config


# Global configuration manager
config_manager = ConfigManager()


def get_config() -> JobTreeConfig:
    """Get the global configuration"""
    return config_manager.get_config()

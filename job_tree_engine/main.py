"""
main.py - Main entry point for the job query API server
"""
import logging
import os

import uvicorn

from job_tree_engine.config import config_manager
from job_tree_engine.rest_api import create_jobs_api


def main():
    """
    Start the job query API, seeded with fake jobs when JOB_TREE_SAMPLE_JOBS is set.
    """
    config = config_manager.load_config('env')
    logging.basicConfig(level=config.log_level)
    logger = logging.getLogger(__name__)

    sample_jobs = int(os.getenv("JOB_TREE_SAMPLE_JOBS", "0"))
    api = create_jobs_api(config, sample_jobs=sample_jobs)

    logger.info("Starting job query API on %s:%d", config.api_host, config.api_port)
    logger.info("Backend: %s (table %s), cache: %s", config.backend_uri, config.jobs_table, config.cache_type)

    uvicorn.run(api.get_app(), host=config.api_host, port=config.api_port)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
GitHub stars manager: organize starred repositories into lists and clean
them up with an LLM
"""

__version__ = "0.1.0"

from star_manager.core.backup import BackupManager
from star_manager.core.config import load_config
from star_manager.core.executor import run_bulk
from star_manager.core.plan import PlanExecutor, generate_plan

# Import the main classes and functions for easier access
from star_manager.services.analyzer import RepoAnalyzer
from star_manager.services.github_client import GitHubClient
from star_manager.services.llm_client import LLMClient

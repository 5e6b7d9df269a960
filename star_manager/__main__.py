#!/usr/bin/env python3
"""
Main execution module for the GitHub stars manager
"""

from star_manager.cli.commands import main

if __name__ == "__main__":
    main()

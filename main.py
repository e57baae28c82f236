#!/usr/bin/env python3
"""
Main entry point for the overlay event hub
"""

from overlay_hub.main import run

if __name__ == "__main__":
    run()

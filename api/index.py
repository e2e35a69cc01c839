"""
Roadmap API - Vercel Serverless Entry Point
"""
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from roadmap.app import create_app

app = create_app()

# Vercel serverless handler
handler = app

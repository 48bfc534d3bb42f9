#!/usr/bin/env python3
"""
Main entry point for the fair meeting point API
"""

from fairmeet.app import app, settings

if __name__ == '__main__':
    if not settings.has_api_key:
        print("GOOGLE_MAPS_API_KEY is not configured: set it in .env to enable routing.")
    app.run(debug=True, host=settings.host, port=settings.port)

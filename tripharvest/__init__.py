"""TripHarvest - travel content scraping engine.

Collects activities, accommodations and destinations from travel sites
with a rate-limited headless browser and per-site content extractors.
"""

__version__ = "0.1.0"
__author__ = "TripHarvest Team"

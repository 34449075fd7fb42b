"""
Commander decklist scraping and card price ingestion pipeline.
"""
__version__ = "0.1.0"

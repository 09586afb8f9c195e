"""
Icon Catalog Pipeline

Scans a folder of SVG icons, generates descriptive metadata and embeddings
with Gemini, stores them in a local JSON dataset, and bulk-loads the dataset
into PostgreSQL (pgvector) for similarity search.
"""

__version__ = "1.0.0"

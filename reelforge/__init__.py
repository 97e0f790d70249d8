"""ReelForge: narrated long-form video assembled from short generated clips"""

__version__ = "0.1.0"

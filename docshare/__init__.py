"""DocShare: document storage and sharing service"""

__version__ = "1.0.0"

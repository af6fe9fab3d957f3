"""Product photo studio: segmentation, compositing and product classification."""

__version__ = "1.0.0"

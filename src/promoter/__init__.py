"""Image Promoter: build-then-deploy promotion for inference images."""

__version__ = "0.3.0"

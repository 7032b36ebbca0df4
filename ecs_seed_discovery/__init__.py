"""Alibaba Cloud ECS seed hosts provider for cluster discovery."""

__version__ = "0.1.0"

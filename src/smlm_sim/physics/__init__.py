"""Optical and sensor models."""

from .camera import Camera, gaussian_kernel

__all__ = ["Camera", "gaussian_kernel"]

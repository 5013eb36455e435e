"""Kioku: a personal assistant with local memory and pluggable LLM providers."""

__version__ = "0.1.0"

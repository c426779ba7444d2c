"""Uniform request/response surface over Bedrock model families and vector stores."""

__version__ = "0.1.0"

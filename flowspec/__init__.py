"""Model, parser and validator for Serverless Workflow DSL documents."""

__version__ = "0.1.0"

__all__ = ["__version__"]
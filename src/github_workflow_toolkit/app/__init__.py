"""Command-line application layer.

Provides:
- Settings loaded from the environment and .env
- Structured logging
- Parallel linting of many files
- The `workflow-toolkit` CLI
"""

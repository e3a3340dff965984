# src/extest/cli/__init__.py

# src/mtest/cli/__init__.py

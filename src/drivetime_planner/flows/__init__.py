"""Prefect flows.

- generate.py - headless run: click, generate, persist, build site
"""

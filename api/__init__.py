"""
REST API for the translation orchestrator.
"""

"""
Core modules for LLM Gatekeeper.

This package contains the request gate, cost tracking, response caching
and retry policy that guard every completion call.
"""

"""
Core blob storage logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns. This separation means we can test the
facade against an in-memory backend and swap providers if needed.
"""

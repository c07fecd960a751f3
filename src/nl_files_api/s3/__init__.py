"""Thin boto3 helpers for the object-store backend."""

"""Utility modules: geometry math and logging"""

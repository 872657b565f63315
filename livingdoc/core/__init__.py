"""Configuration, exceptions and caching"""

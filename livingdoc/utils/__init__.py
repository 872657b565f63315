"""Logging and helper utilities"""

"""Execution reports: canonical model, format adapters, merging"""

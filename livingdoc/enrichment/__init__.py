"""Correlation of parsed features with execution results"""

"""Gherkin keyword tables, lexer and structural parser"""

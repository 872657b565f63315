"""LivingDoc: Gherkin parsing and execution result correlation"""

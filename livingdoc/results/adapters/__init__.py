"""One adapter per execution report format"""

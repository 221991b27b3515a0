"""REST API"""

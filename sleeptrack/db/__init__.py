"""Database connection and schema"""

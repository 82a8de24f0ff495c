"""Command line interface for pacdep"""

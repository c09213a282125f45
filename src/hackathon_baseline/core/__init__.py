"""Core components for hackathon account automation.

This module contains the foundational components including AWS client
management, configuration handling and the error taxonomy.
"""

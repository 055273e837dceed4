"""
Session engine: wire protocol, command processing and connection dispatch
"""

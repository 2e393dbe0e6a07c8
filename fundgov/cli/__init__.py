"""
fundgov command-line tools.
"""

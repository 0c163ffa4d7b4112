"""
Request layer application package.
"""

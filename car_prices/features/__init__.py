"""
Features package: typed field extraction from raw listing text.
"""

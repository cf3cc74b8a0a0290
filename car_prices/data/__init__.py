"""
Data package for loading, filtering and summarizing the listings dataset.

This package exposes functions to read the raw listings export, persist the
cleaned and complete-case datasets as CSV, drop incomplete records, remove
z-score outliers and produce exploratory summaries.
"""

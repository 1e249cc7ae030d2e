"""Local pain-pattern analytics.

Pure functions over an in-memory list of health records: correlations,
multi-factor patterns, trends, forecasts and ranked recommendations.
"""

"""
Exam platform: timed exam attempts, scoring, leaderboards and prizes.
"""

__version__ = "1.0.0"

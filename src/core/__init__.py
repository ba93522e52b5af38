"""Core domain package for crosstalk.

Core contains channel mapping, membership, playback filtering, highlight
matching, markup translation and event routing without any IRC or Slack
library code, keeping the relay logic portable and testable with fakes.
"""

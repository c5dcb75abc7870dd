"""
Campus Collab
Student-collaborator matchmaking: post projects, browse a ranked feed,
request meetups, and get an AI read on how well you fit a project.

Architecture:
- MongoDB: users, projects, meetups (read as snapshots)
- Identity provider: issues the bearer tokens we verify
- LLM: alignment blurbs only (not a source of ranking scores)
"""

__version__ = "1.0.0"

"""Meeting task approval orchestrator.

Turns a finished meeting transcript into a batch of candidate tasks, posts
each one to a Teams channel for human approval, and creates the approved
ones on the task board exactly once.
"""

"""
repositories/ - Data Access Layer
==================================
Encapsulates all SQL for the messages table and returns Message objects
wrapped in a Result.
"""

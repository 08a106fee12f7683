"""
report-digest: normalize daily work reports pasted from group chats into a
de-duplicated, department-classified record set.
"""

__version__ = "0.1.0"

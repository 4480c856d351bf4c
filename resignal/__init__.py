"""
Resignal capture - record audio locally and turn it into a transcript via a
chunked upload to a remote transcription service.
"""

__version__ = "0.1.0"

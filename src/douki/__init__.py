"""
Douki - Subtitle synchronization utility.

Re-times ASS subtitles authored for one release of a video to another
release by matching acoustic fingerprints of stored sections.
"""

__version__ = "0.2.0";
__author__ = "Douki Project";
__license__ = "MIT";
